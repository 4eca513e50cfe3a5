# config.py - settings for the seeder, the API and the change generator
import logging
import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, SecretStr, ValidationError, field_validator

from .errors import ConfigError

load_dotenv()

logger = logging.getLogger(__name__)

_TRUE_VALUES = {"1", "true", "yes", "on"}


def get_env(key: str, default: Optional[str] = None) -> Optional[str]:
    """Return the env var, treating an empty value as unset."""
    value = os.getenv(key)
    if value is None or value == "":
        return default
    return value


def get_env_int(key: str, default: Optional[int]) -> Optional[int]:
    value = get_env(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        logger.warning("Invalid integer value for %s: %r, using default: %s", key, value, default)
        return default


def get_env_float(key: str, default: float) -> float:
    value = get_env(key)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        logger.warning("Invalid number for %s: %r, using default: %s", key, value, default)
        return default


def get_env_bool(key: str, default: bool = False) -> bool:
    value = get_env(key)
    if value is None:
        return default
    return value.strip().lower() in _TRUE_VALUES


class MongoSettings(BaseModel):
    mongo_uri: str = Field(default="mongodb://localhost:27017", min_length=1)
    replica_set_name: str = Field(default="rs0", min_length=1)
    member_host: str = Field(default="mongodb-source:27017", min_length=1)
    admin_user: str = Field(default="admin", min_length=1)
    admin_password: Optional[SecretStr] = None
    admin_db: str = Field(default="admin", min_length=1)
    db_name: str = Field(default="inventory", min_length=1)
    server_selection_timeout_ms: int = Field(default=5000, gt=0)
    tls: bool = False
    tls_allow_invalid_certificates: bool = False
    ready_timeout_seconds: float = Field(default=30.0, gt=0)
    ready_poll_interval_seconds: float = Field(default=1.0, gt=0)
    idempotent: bool = False

    @field_validator("member_host")
    @classmethod
    def validate_member_host(cls, v):
        host, sep, port = v.rpartition(":")
        if not sep or not host or not port.isdigit():
            raise ValueError("member_host must look like host:port")
        return v

    @classmethod
    def from_env(cls, **overrides) -> "MongoSettings":
        values = {
            "mongo_uri": get_env("MONGO_URI", "mongodb://localhost:27017"),
            "replica_set_name": get_env("REPLICA_SET_NAME", "rs0"),
            "member_host": get_env("REPLICA_SET_MEMBER_HOST", "mongodb-source:27017"),
            "admin_user": get_env("MONGO_ADMIN_USER", "admin"),
            "admin_password": get_env("MONGO_ADMIN_PASSWORD"),
            "admin_db": get_env("MONGO_ADMIN_DB", "admin"),
            "db_name": get_env("DB_NAME", "inventory"),
            "server_selection_timeout_ms": get_env_int("MONGO_SERVER_SELECTION_TIMEOUT_MS", 5000),
            "tls": get_env_bool("MONGO_TLS"),
            "tls_allow_invalid_certificates": get_env_bool("MONGO_TLS_ALLOW_INVALID_CERTIFICATES"),
            "ready_timeout_seconds": get_env_float("READY_TIMEOUT_SECONDS", 30.0),
            "ready_poll_interval_seconds": get_env_float("READY_POLL_INTERVAL_SECONDS", 1.0),
            "idempotent": get_env_bool("SEED_IDEMPOTENT"),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        try:
            return cls(**values)
        except ValidationError as e:
            raise ConfigError(f"Invalid MongoDB settings: {e}") from e

    def password(self) -> Optional[str]:
        return self.admin_password.get_secret_value() if self.admin_password else None

    def require_password(self) -> str:
        password = self.password()
        if not password:
            raise ConfigError("MONGO_ADMIN_PASSWORD must be set to create the admin user")
        return password


class GeneratorSettings(BaseModel):
    target_cps: int = Field(default=10000, gt=0)
    duration_seconds: float = Field(default=60, gt=0)
    concurrency: int = Field(default=50, gt=0)
    batch_size: int = Field(default=10, gt=0)
    log_interval_seconds: float = Field(default=5, gt=0)
    seed: Optional[int] = None

    @classmethod
    def from_env(cls, **overrides) -> "GeneratorSettings":
        values = {
            "target_cps": get_env_int("TARGET_CPS", 10000),
            "duration_seconds": get_env_int("DURATION_SECONDS", 60),
            "concurrency": get_env_int("CONCURRENCY", 50),
            "batch_size": get_env_int("BATCH_SIZE", 10),
            "log_interval_seconds": get_env_int("LOG_INTERVAL_SECONDS", 5),
            "seed": get_env_int("GENERATOR_SEED", None),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        try:
            return cls(**values)
        except ValidationError as e:
            raise ConfigError(f"Invalid generator settings: {e}") from e

    @property
    def ops_per_worker(self) -> int:
        return max(1, self.target_cps // self.concurrency)

    @property
    def batch_interval_seconds(self) -> float:
        # never hammer the server faster than every 10ms per worker
        return max(0.01, self.batch_size / self.ops_per_worker)
