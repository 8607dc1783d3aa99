from typing import Any, Dict, Optional
import json

import httpx

from .config import DEFAULT_HTTP_LOG
from .errors import NetworkError, raise_for_api_error
from .utils import append_log_line, get_logger, redact_payload, redacted_headers, truncate_text


class SupabaseClient:
    def __init__(
        self,
        base_url: str,
        anon_key: str,
        timeout: float = 30.0,
        http_log_path: Optional[str] = DEFAULT_HTTP_LOG,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip('/')
        self.anon_key = anon_key
        self.tokens: Dict[str, Any] = {}
        self.timeout = timeout
        self.logger = get_logger('supasync')
        self._client = httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout, transport=transport)
        self.http_log_path = http_log_path

    def set_access_token(self, token: Optional[str]) -> None:
        if token:
            self.tokens["access_token"] = token
        else:
            self.tokens.pop("access_token", None)

    def _default_headers(self) -> Dict[str, str]:
        bearer = self.tokens.get("access_token") or self.anon_key
        return {
            "apikey": self.anon_key,
            "Authorization": f"Bearer {bearer}",
        }

    def url(self, path: str) -> str:
        return path if path.startswith('http') else f"{self.base_url}{path}"

    async def request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        url = self.url(path)
        headers = dict(self._default_headers())
        headers.update(kwargs.get('headers', {}) or {})
        kwargs['headers'] = headers
        redacted = redacted_headers(headers)
        payload = None
        if "json" in kwargs:
            payload = redact_payload(kwargs.get("json"))
        elif "content" in kwargs:
            payload = f"<{len(kwargs.get('content') or b'')} bytes>"
        self.logger.debug('HTTP %s %s headers=%s', method, url, redacted)
        if payload is not None:
            append_log_line(self.http_log_path, f"{method} {url} headers={redacted} payload={payload}")
        else:
            append_log_line(self.http_log_path, f"{method} {url} headers={redacted}")
        try:
            resp = await self._client.request(method, url, **kwargs)
        except httpx.TransportError as exc:
            append_log_line(self.http_log_path, f"{method} {url} transport error={exc!r}")
            raise NetworkError(str(exc) or exc.__class__.__name__) from exc
        response_body: Any = None
        if resp.headers.get("content-type", "").startswith("application/json"):
            try:
                response_body = redact_payload(resp.json())
            except ValueError:
                response_body = truncate_text(resp.text or "")
        else:
            response_body = f"<{len(resp.content)} bytes>"
        append_log_line(
            self.http_log_path,
            f"{method} {url} status={resp.status_code} response={json.dumps(response_body, ensure_ascii=True)}",
        )
        raise_for_api_error(resp)
        return resp

    async def close(self) -> None:
        await self._client.aclose()
