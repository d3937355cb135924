import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import FrozenSet, Optional, Tuple

DEFAULT_EXCLUDED_DOCUMENTS = "bundesliga-standings.csv"
DEFAULT_HISTORY_PREFIXES = "recent-history-,home-history-,away-history-"


def _split_csv_env(raw: str) -> Tuple[str, ...]:
    return tuple(part.strip() for part in raw.split(",") if part.strip())


def _optional_int_env(name: str) -> Optional[int]:
    """Parse an optional integer env var; empty or missing means unset."""
    raw = os.getenv(name, "").strip()
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


@dataclass
class Settings:
    """Application settings loaded from environment variables with safe defaults.

    Settings only provide defaults to callers (CLI, API). Core operations take
    scope, exclusions and reprediction limits as explicit parameters.
    """

    app_name: str = "Matchday Ledger"
    env: str = "dev"
    database_url: str = "sqlite+aiosqlite:///./ledger.db"
    log_level: str = "INFO"
    scope: str = "default"
    model: str = "o4-mini"
    max_repredictions: Optional[int] = None
    staleness_excluded: FrozenSet[str] = field(
        default_factory=lambda: frozenset(_split_csv_env(DEFAULT_EXCLUDED_DOCUMENTS))
    )
    history_prefixes: Tuple[str, ...] = field(
        default_factory=lambda: _split_csv_env(DEFAULT_HISTORY_PREFIXES)
    )

    @classmethod
    def from_env(cls) -> "Settings":
        """Create Settings from environment variables."""
        return cls(
            app_name=os.getenv("APP_NAME", cls.app_name),
            env=os.getenv("ENV", cls.env),
            database_url=os.getenv("DATABASE_URL") or cls.database_url,
            log_level=os.getenv("LOG_LEVEL", cls.log_level),
            scope=os.getenv("LEDGER_SCOPE", cls.scope),
            model=os.getenv("LEDGER_MODEL", cls.model),
            max_repredictions=_optional_int_env("LEDGER_MAX_REPREDICTIONS"),
            staleness_excluded=frozenset(
                _split_csv_env(os.getenv("LEDGER_STALENESS_EXCLUDED", DEFAULT_EXCLUDED_DOCUMENTS))
            ),
            history_prefixes=_split_csv_env(
                os.getenv("LEDGER_HISTORY_PREFIXES", DEFAULT_HISTORY_PREFIXES)
            ),
        )


@lru_cache
def get_settings() -> Settings:
    """Return a cached Settings instance."""
    return Settings.from_env()
