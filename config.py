import os
from functools import lru_cache
from pathlib import Path
from typing import Optional


class Settings:
    def __init__(
        self,
        database_url: Optional[str],
        data_dir: Optional[Path],
        timezone: str,
        log_level: str,
    ) -> None:
        self.database_url = database_url
        self.data_dir = data_dir
        self.timezone = timezone
        self.log_level = log_level

    @property
    def uses_database(self) -> bool:
        return bool(self.database_url)


def _normalize_database_url(raw: Optional[str]) -> Optional[str]:
    if not raw or not raw.strip():
        return None
    url = raw.strip()
    # Hosted Postgres providers hand out postgres:// URLs; SQLAlchemy only
    # registers the postgresql dialect name.
    if url.startswith("postgres://"):
        url = "postgresql://" + url[len("postgres://") :]
    return url


def _resolve_data_dir() -> Optional[Path]:
    raw = os.getenv("FINANCE_DATA_DIR", "./data")
    if not raw.strip():
        return None
    return Path(raw).resolve()


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings(
        database_url=_normalize_database_url(os.getenv("FINANCE_DATABASE_URL")),
        data_dir=_resolve_data_dir(),
        timezone=os.getenv("FINANCE_TIMEZONE", "America/Sao_Paulo"),
        log_level=os.getenv("FINANCE_LOG_LEVEL", "INFO").upper(),
    )
