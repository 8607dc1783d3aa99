import os
from dataclasses import dataclass

DEFAULT_BUCKET = "user_files"
DEFAULT_NOTES_TABLE = "notes"
DEFAULT_SESSION_PATH = ".supasync/session.json"
DEFAULT_HTTP_LOG = "supasync_http.log"


@dataclass
class Settings:
    url: str
    anon_key: str
    bucket: str = DEFAULT_BUCKET
    notes_table: str = DEFAULT_NOTES_TABLE
    session_path: str = DEFAULT_SESSION_PATH
    http_log_path: str = DEFAULT_HTTP_LOG
    timeout: float = 30.0

    @classmethod
    def from_env(cls) -> "Settings":
        url = os.getenv("SUPASYNC_URL", "").strip()
        anon_key = os.getenv("SUPASYNC_ANON_KEY", "").strip()
        if not url or not anon_key:
            raise ValueError("SUPASYNC_URL and SUPASYNC_ANON_KEY must be set")
        return cls(
            url=url.rstrip("/"),
            anon_key=anon_key,
            bucket=os.getenv("SUPASYNC_BUCKET", DEFAULT_BUCKET),
            notes_table=os.getenv("SUPASYNC_NOTES_TABLE", DEFAULT_NOTES_TABLE),
            session_path=os.getenv("SUPASYNC_SESSION_PATH", DEFAULT_SESSION_PATH),
            # an empty value disables the http log
            http_log_path=os.getenv("SUPASYNC_HTTP_LOG", os.path.join(os.getcwd(), DEFAULT_HTTP_LOG)),
            timeout=float(os.getenv("SUPASYNC_TIMEOUT", "30")),
        )
