import os
from typing import List


def _truthy(raw: str) -> bool:
    return str(raw or "").strip().lower() in {"1", "true", "yes", "on"}


class Settings:
    def _split_csv(self, raw: str, *, default: List[str]) -> List[str]:
        parts = [p.strip() for p in (raw or "").split(",")]
        return [p for p in parts if p] or default

    def _float(self, name: str, default: float) -> float:
        raw = (os.getenv(name) or "").strip()
        if not raw:
            return default
        try:
            return float(raw)
        except ValueError:
            return default

    def __init__(self) -> None:
        self.env = os.getenv('APP_ENV', 'local')
        # Comma-separated list of allowed CORS origins for the web client.
        self.cors_origins = self._split_csv(
            os.getenv("CORS_ORIGINS", "").strip(),
            default=["http://localhost:3000", "http://127.0.0.1:3000"],
        )
        self.api_version = os.getenv("APP_VERSION", "0.1.0").strip() or "0.1.0"
        self.log_level = (os.getenv("LOG_LEVEL", "info").strip().lower() or "info")

        # External ledger service (OpenAccounting).
        self.oa_base_url = (os.getenv("OA_BASE_URL", "").strip() or "http://localhost:8080").rstrip("/")
        self.oa_api_key = os.getenv("OA_API_KEY", "").strip()
        self.oa_accept_version = os.getenv("OA_ACCEPT_VERSION", "").strip() or "1.4.0"
        self.oa_timeout_seconds = self._float("OA_TIMEOUT_SECONDS", 5.0)

        # Per-line checks (one side per line, >= 2 lines) on journal writes.
        raw_strict = os.getenv("JOURNAL_STRICT_LINES", "").strip()
        self.journal_strict_lines = _truthy(raw_strict) if raw_strict else True

settings = Settings()
