from typing import Any, Optional

import httpx


class SupasyncError(RuntimeError):
    default_message = "Unknown error"

    def __init__(self, message: Optional[str] = None, status: Optional[int] = None, code: Optional[str] = None):
        self.message = message or self.default_message
        self.status = status
        self.code = code
        super().__init__(self.message)


class NoActiveSession(SupasyncError):
    default_message = "You must be logged in to do that."


class ValidationError(SupasyncError):
    default_message = "Invalid input"


class InvalidCredentials(SupasyncError):
    default_message = "Invalid login credentials"


class EmailInUse(SupasyncError):
    default_message = "User already registered"


class WeakPassword(SupasyncError):
    default_message = "Password is too weak"


class NotFound(SupasyncError):
    default_message = "Not found"


class PermissionDenied(SupasyncError):
    default_message = "Permission denied"


class Conflict(SupasyncError):
    default_message = "The resource already exists"


class NetworkError(SupasyncError):
    default_message = "Network error"


class LocalFileError(SupasyncError):
    default_message = "Could not access local file"


class ApiError(SupasyncError):
    pass


_CODE_MAP = {
    "invalid_credentials": InvalidCredentials,
    "invalid_grant": InvalidCredentials,
    "email_exists": EmailInUse,
    "user_already_exists": EmailInUse,
    "weak_password": WeakPassword,
    "duplicate": Conflict,
    "23505": Conflict,
    "42501": PermissionDenied,
    "pgrst116": NotFound,
    "not_found": NotFound,
    "nosuchkey": NotFound,
}


def _body(resp: httpx.Response) -> Any:
    try:
        return resp.json()
    except ValueError:
        return None


def _error_message(body: Any, resp: httpx.Response) -> str:
    if isinstance(body, dict):
        for key in ("error_description", "msg", "message", "error"):
            value = body.get(key)
            if value:
                return str(value)
    return (resp.text or "")[:200] or f"HTTP {resp.status_code}"


def _error_code(body: Any) -> Optional[str]:
    if not isinstance(body, dict):
        return None
    for key in ("error_code", "code", "error"):
        value = body.get(key)
        if isinstance(value, str) and value:
            return value
    return None


def _body_status(body: Any, fallback: int) -> int:
    # Storage reports its own status inside the body, e.g. {"statusCode": "409"}
    if isinstance(body, dict) and body.get("statusCode") is not None:
        try:
            return int(body["statusCode"])
        except (TypeError, ValueError):
            return fallback
    return fallback


def error_from_response(resp: httpx.Response) -> SupasyncError:
    body = _body(resp)
    message = _error_message(body, resp)
    code = _error_code(body)
    status = _body_status(body, resp.status_code)

    cls = _CODE_MAP.get((code or "").lower())
    if cls is None:
        lowered = message.lower()
        if "already registered" in lowered or ("already exists" in lowered and "user" in lowered):
            cls = EmailInUse
        elif "password should" in lowered or "weak password" in lowered:
            cls = WeakPassword
        elif "invalid login credentials" in lowered:
            cls = InvalidCredentials
        elif status == 409 or "already exists" in lowered:
            cls = Conflict
        elif status in (401, 403):
            cls = PermissionDenied
        elif status == 404 or "not found" in lowered:
            cls = NotFound
        elif status >= 500:
            cls = NetworkError
        else:
            cls = ApiError
    return cls(message, status=status, code=code)


def raise_for_api_error(resp: httpx.Response) -> None:
    if resp.is_success:
        return
    raise error_from_response(resp)
