"""Environment-variable-based configuration."""

import os
from pathlib import Path

from sqlexec.models.config import DatabaseConfig, PoolConfig


def get_host() -> str:
    """Return the database host from SQLEXEC_HOST."""
    return os.environ.get("SQLEXEC_HOST", "localhost")


def get_port() -> int:
    """Return the database port from SQLEXEC_PORT."""
    return int(os.environ.get("SQLEXEC_PORT", "5432"))


def get_database() -> str:
    """Return the database name from SQLEXEC_DATABASE."""
    return os.environ.get("SQLEXEC_DATABASE", "postgres")


def get_username() -> str:
    """Return the database user from SQLEXEC_USER."""
    return os.environ.get("SQLEXEC_USER", "postgres")


def get_password() -> str:
    """Return the database password from SQLEXEC_PASSWORD."""
    return os.environ.get("SQLEXEC_PASSWORD", "")


def get_sqlite_path() -> Path | None:
    """Return the SQLite database path from SQLEXEC_SQLITE_PATH, if set."""
    raw = os.environ.get("SQLEXEC_SQLITE_PATH")
    return Path(raw).expanduser() if raw else None


def get_pool_name() -> str | None:
    """Return the pool name from SQLEXEC_POOL_NAME. Unset means no pooling."""
    return os.environ.get("SQLEXEC_POOL_NAME") or None


def get_pool_max_size() -> int:
    """Return the maximum pool size from SQLEXEC_POOL_MAX_SIZE."""
    return int(os.environ.get("SQLEXEC_POOL_MAX_SIZE", "10"))


def get_pool_min_idle() -> int:
    """Return the minimum idle connections from SQLEXEC_POOL_MIN_IDLE."""
    return int(os.environ.get("SQLEXEC_POOL_MIN_IDLE", "2"))


def get_log_level() -> str:
    """Return the logging level from SQLEXEC_LOG_LEVEL."""
    return os.environ.get("SQLEXEC_LOG_LEVEL", "WARNING")


def load_database_config() -> DatabaseConfig:
    """Build a validated DatabaseConfig from the environment."""
    return DatabaseConfig(
        host=get_host(),
        port=get_port(),
        database=get_database(),
        username=get_username(),
        password=get_password(),
    )


def load_pool_config() -> PoolConfig | None:
    """Build a validated PoolConfig from the environment, or None if pooling is off."""
    name = get_pool_name()
    if name is None:
        return None
    return PoolConfig(name=name, max_size=get_pool_max_size(), min_idle=get_pool_min_idle())
