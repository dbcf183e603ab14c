"""
Configuration helpers for the audience filter API.
Supports environment variables for easy deployment configuration.
"""

import os
from typing import Optional, Dict, Any

from .exceptions import ConfigError


PARAMSTYLES = ("qmark", "numeric")

_TRUTHY = ("1", "true", "yes", "on")
_FALSY = ("0", "false", "no", "off")


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    value = raw.strip().lower()
    if value in _TRUTHY:
        return True
    if value in _FALSY:
        return False
    raise ConfigError(f"{name} must be a boolean, got {raw!r}")


def _env_int(name: str, default: int, minimum: int = 1) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from None
    if value < minimum:
        raise ConfigError(f"{name} must be >= {minimum}, got {value}")
    return value


class Config:
    """
    Configuration helper that reads from environment variables.

    Environment variables:
        AUDIENCE_DB_PATH: SQLite database used for previews (unset disables previews)
        AUDIENCE_STRICT_VALIDATION: Refuse to compile invalid expressions (default: true)
        AUDIENCE_PARAMSTYLE: Placeholder style, 'qmark' or 'numeric' (default: qmark)
        AUDIENCE_MAX_DEPTH: Maximum nesting depth accepted from stored JSON (default: 10)
        AUDIENCE_CONTACTS_TABLE: Preview table name (default: audience_contacts)

    AUDIENCE_FIELD_REGISTRY, AUDIENCE_LOG_DIR and AUDIENCE_DEBUG are read once
    at import time by the registry and the log manager.
    """

    @staticmethod
    def from_env() -> Dict[str, Any]:
        """
        Create configuration from environment variables.

        Returns:
            Dict with configuration parameters for AudienceFilterAPI

        Example:
            from audience import AudienceFilterAPI
            from audience.config import Config

            config = Config.from_env()
            api = AudienceFilterAPI(**config)
        """
        paramstyle = os.getenv("AUDIENCE_PARAMSTYLE", "qmark").strip().lower()
        if paramstyle not in PARAMSTYLES:
            raise ConfigError(
                f"AUDIENCE_PARAMSTYLE must be one of {PARAMSTYLES}, got {paramstyle!r}"
            )

        config = {
            "strict_validation": _env_bool("AUDIENCE_STRICT_VALIDATION", True),
            "paramstyle": paramstyle,
            "max_depth": _env_int("AUDIENCE_MAX_DEPTH", 10),
            "contacts_table": os.getenv("AUDIENCE_CONTACTS_TABLE", "audience_contacts"),
        }

        db_path = os.getenv("AUDIENCE_DB_PATH")
        if db_path:
            config["db_path"] = os.path.expanduser(db_path)

        return config

    @staticmethod
    def for_postgres(strict_validation: bool = True) -> Dict[str, Any]:
        """
        Configuration for a Postgres executor ($1, $2, ... placeholders).

        Args:
            strict_validation: Refuse to compile invalid expressions

        Returns:
            Configuration dict without a preview database
        """
        return {
            "strict_validation": strict_validation,
            "paramstyle": "numeric",
        }

    @staticmethod
    def for_sqlite(db_path: Optional[str] = None,
                   contacts_table: str = "audience_contacts") -> Dict[str, Any]:
        """
        Configuration for local previews against a SQLite file.

        Args:
            db_path: Path to the preview database
                (default: ~/.audience/data/audience.db)
            contacts_table: Table holding contact rows

        Returns:
            Configuration dict with previews enabled
        """
        return {
            "strict_validation": True,
            "paramstyle": "qmark",
            "db_path": db_path or os.path.expanduser("~/.audience/data/audience.db"),
            "contacts_table": contacts_table,
        }
