from typing import Any, Dict, List, Optional, Sequence, Tuple
from urllib.parse import quote

import httpx

from endpoints import AUTH, RECORDS, STORAGE
from .client import SupabaseClient
from .errors import ApiError, NotFound


def _json_or_raise(resp: httpx.Response) -> Any:
    try:
        return resp.json()
    except ValueError as exc:
        raise ApiError(f"Non-JSON response: {resp.text[:200]}", status=resp.status_code) from exc


def _first_row(payload: Any) -> Dict[str, Any]:
    if isinstance(payload, list):
        if not payload:
            raise NotFound("No matching row")
        payload = payload[0]
    if not isinstance(payload, dict):
        raise ApiError(f"Unexpected response: {payload!r}")
    return payload


def _object_path(bucket: str, path: str) -> Dict[str, str]:
    return {"bucket": quote(bucket, safe=""), "path": quote(path, safe="/")}


# Auth (GoTrue)

async def sign_in_with_password(client: SupabaseClient, email: str, password: str) -> Dict[str, Any]:
    resp = await client.request(AUTH["sign_in"]["method"], AUTH["sign_in"]["path"], json={"email": email, "password": password})
    return _json_or_raise(resp)


async def sign_up(client: SupabaseClient, email: str, password: str) -> Dict[str, Any]:
    resp = await client.request(AUTH["sign_up"]["method"], AUTH["sign_up"]["path"], json={"email": email, "password": password})
    return _json_or_raise(resp)


async def sign_out(client: SupabaseClient, access_token: str) -> None:
    headers = {"Authorization": f"Bearer {access_token}"}
    await client.request(AUTH["sign_out"]["method"], AUTH["sign_out"]["path"], headers=headers)


async def refresh_session(client: SupabaseClient, refresh_token: str) -> Dict[str, Any]:
    resp = await client.request(AUTH["refresh"]["method"], AUTH["refresh"]["path"], json={"refresh_token": refresh_token})
    return _json_or_raise(resp)


# Records (PostgREST)

async def list_rows(
    client: SupabaseClient,
    table: str,
    owner_id: str,
    order_by: Tuple[str, bool] = ("created_at", False),
) -> List[Dict[str, Any]]:
    column, ascending = order_by
    params = {
        "select": "*",
        "user_id": f"eq.{owner_id}",
        "order": f"{column}.{'asc' if ascending else 'desc'}",
    }
    endpoint = RECORDS["list"]
    resp = await client.request(endpoint["method"], endpoint["path"].format(table=table), params=params)
    rows = _json_or_raise(resp)
    if not isinstance(rows, list):
        raise ApiError(f"Unexpected response: {rows!r}")
    return rows


async def insert_row(client: SupabaseClient, table: str, record: Dict[str, Any]) -> Dict[str, Any]:
    endpoint = RECORDS["insert"]
    headers = {"Prefer": "return=representation"}
    resp = await client.request(endpoint["method"], endpoint["path"].format(table=table), json=[record], headers=headers)
    return _first_row(_json_or_raise(resp))


async def update_row(
    client: SupabaseClient,
    table: str,
    record_id: Any,
    owner_id: str,
    patch: Dict[str, Any],
) -> Dict[str, Any]:
    endpoint = RECORDS["update"]
    params = {"id": f"eq.{record_id}", "user_id": f"eq.{owner_id}"}
    headers = {"Prefer": "return=representation"}
    resp = await client.request(endpoint["method"], endpoint["path"].format(table=table), params=params, json=patch, headers=headers)
    return _first_row(_json_or_raise(resp))


async def delete_row(client: SupabaseClient, table: str, record_id: Any, owner_id: str) -> None:
    endpoint = RECORDS["delete"]
    params = {"id": f"eq.{record_id}", "user_id": f"eq.{owner_id}"}
    headers = {"Prefer": "return=representation"}
    resp = await client.request(endpoint["method"], endpoint["path"].format(table=table), params=params, headers=headers)
    _first_row(_json_or_raise(resp))


# Objects (Storage)

async def list_objects(client: SupabaseClient, bucket: str, folder: str, limit: int = 100, offset: int = 0) -> List[Dict[str, Any]]:
    endpoint = STORAGE["list"]
    payload = {
        "prefix": folder,
        "limit": limit,
        "offset": offset,
        "sortBy": {"column": "name", "order": "asc"},
    }
    resp = await client.request(endpoint["method"], endpoint["path"].format(**_object_path(bucket, "")), json=payload)
    rows = _json_or_raise(resp)
    if not isinstance(rows, list):
        raise ApiError(f"Unexpected response: {rows!r}")
    # folder placeholders come back with id=None
    return [row for row in rows if row.get("id") is not None]


async def upload_object(
    client: SupabaseClient,
    bucket: str,
    path: str,
    data: bytes,
    overwrite: bool = False,
    content_type: Optional[str] = None,
) -> None:
    endpoint = STORAGE["upload"]
    headers = {
        "x-upsert": "true" if overwrite else "false",
        "cache-control": "max-age=3600",
        "content-type": content_type or "application/octet-stream",
    }
    await client.request(endpoint["method"], endpoint["path"].format(**_object_path(bucket, path)), content=data, headers=headers)


async def download_object(client: SupabaseClient, bucket: str, path: str) -> bytes:
    endpoint = STORAGE["download"]
    resp = await client.request(endpoint["method"], endpoint["path"].format(**_object_path(bucket, path)))
    return resp.content


async def remove_objects(client: SupabaseClient, bucket: str, paths: Sequence[str]) -> List[str]:
    endpoint = STORAGE["remove"]
    resp = await client.request(endpoint["method"], endpoint["path"].format(**_object_path(bucket, "")), json={"prefixes": list(paths)})
    rows = _json_or_raise(resp)
    removed = []
    for row in rows or []:
        bucket_path = row.get("name")
        if bucket_path:
            removed.append(bucket_path)
    return removed


def public_url(client: SupabaseClient, bucket: str, path: str) -> str:
    return client.url(STORAGE["public_url"]["path"].format(**_object_path(bucket, path)))


class SupabaseRecordStore:
    def __init__(self, client: SupabaseClient, table: str) -> None:
        self.client = client
        self.table = table

    async def list(self, owner_id: str, order_by: Tuple[str, bool]) -> List[Dict[str, Any]]:
        return await list_rows(self.client, self.table, owner_id, order_by)

    async def insert(self, record: Dict[str, Any]) -> Dict[str, Any]:
        return await insert_row(self.client, self.table, record)

    async def update(self, record_id: Any, owner_id: str, patch: Dict[str, Any]) -> Dict[str, Any]:
        return await update_row(self.client, self.table, record_id, owner_id, patch)

    async def delete(self, record_id: Any, owner_id: str) -> None:
        await delete_row(self.client, self.table, record_id, owner_id)


class SupabaseObjectStore:
    def __init__(self, client: SupabaseClient, bucket: str) -> None:
        self.client = client
        self.bucket = bucket

    async def list(self, folder: str) -> List[Dict[str, Any]]:
        return await list_objects(self.client, self.bucket, folder)

    async def upload(self, path: str, data: bytes, overwrite: bool = False, content_type: Optional[str] = None) -> None:
        await upload_object(self.client, self.bucket, path, data, overwrite=overwrite, content_type=content_type)

    async def download(self, path: str) -> bytes:
        return await download_object(self.client, self.bucket, path)

    async def remove(self, paths: Sequence[str]) -> List[str]:
        return await remove_objects(self.client, self.bucket, paths)

    def get_public_url(self, path: str) -> str:
        return public_url(self.client, self.bucket, path)
