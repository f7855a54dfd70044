# vault/config.py
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

DEFAULT_VAULT_ID = "default"


def default_db_path() -> Path:
    return Path.home() / ".vault" / "vault.db"


@dataclass(frozen=True)
class Settings:
    """Runtime settings, read from VAULT_* environment variables."""
    db_path: Optional[Path] = None
    vault_id: str = DEFAULT_VAULT_ID
    log_level: str = "WARNING"

    @classmethod
    def from_env(cls, **overrides: Any) -> "Settings":
        env_db = os.environ.get("VAULT_DB_PATH")
        db_path = overrides.get("db_path") or (Path(env_db) if env_db else None)
        return cls(
            db_path=Path(db_path).resolve() if db_path else None,
            vault_id=overrides.get("vault_id") or os.environ.get("VAULT_ID", DEFAULT_VAULT_ID),
            log_level=(overrides.get("log_level") or os.environ.get("VAULT_LOG_LEVEL", "WARNING")).upper(),
        )

    def resolved_db_path(self) -> Path:
        """db_path if set, otherwise ~/.vault/vault.db. Parent dirs are created."""
        path = self.db_path or default_db_path()
        path.parent.mkdir(parents=True, exist_ok=True)
        return path
