from logging import CRITICAL, DEBUG, ERROR, INFO, WARNING
from os import PathLike, environ
from pathlib import Path
from tomllib import load

from pydantic import BaseModel, field_validator

DEFAULT_CONFIG_PATH = Path("config.toml")
OVERLAY_ENV_VAR = "ORDERDESK_CONFIG"


class General(BaseModel):
    title: str
    app_name: str = "Zem - Store"
    backend_url: str = "http://localhost:3000"


class Database(BaseModel):
    path: str


class Logging(BaseModel):
    level: int

    @field_validator("level", mode="before")
    @classmethod
    def convert_log_level(cls, value):
        log_levels = {
            "DEBUG": DEBUG,
            "INFO": INFO,
            "WARNING": WARNING,
            "ERROR": ERROR,
            "CRITICAL": CRITICAL,
        }
        return log_levels.get(value.upper(), INFO)


class Paths(BaseModel):
    logs: str


class Storage(BaseModel):
    endpoint_url: str
    region: str = "auto"
    bucket: str
    prefix: str = "payment_proofs"


class Uploads(BaseModel):
    max_file_size: int = 2097152  # 2 MB default
    allowed_extensions: list[str] = [".jpg", ".jpeg", ".png", ".pdf"]

    @field_validator("allowed_extensions")
    @classmethod
    def normalise_extensions(cls, value: list[str]) -> list[str]:
        return [ext.lower() if ext.startswith(".") else f".{ext.lower()}" for ext in value]


class Email(BaseModel):
    smtp_host: str = ""
    smtp_port: int = 587
    use_tls: bool = True
    from_email: str = ""
    from_name: str = "Zem Store"
    admin_email: str = ""
    timeout: float = 10.0
    max_attempts: int = 3
    backoff: float = 1.0


class Notifier(BaseModel):
    grace_period: float = 2.0
    deadline: float = 30.0
    max_workers: int = 4
    shutdown_timeout: float = 5.0


class RateLimitRule(BaseModel):
    name: str
    method: str
    path: str
    max_requests: int
    window_seconds: int

    @field_validator("method")
    @classmethod
    def upper_method(cls, value: str) -> str:
        return value.upper()


class RateLimit(BaseModel):
    rules: list[RateLimitRule] = []


class Network(BaseModel):
    host: str
    port: int
    reload: bool
    cors_origins: list[str] = ["http://localhost:5173"]

    rate_limit: RateLimit


class Config(BaseModel):
    general: General
    database: Database
    paths: Paths
    storage: Storage
    uploads: Uploads
    email: Email
    notifier: Notifier
    logging: Logging
    network: Network


class Secrets(BaseModel):
    """Values that never live in config files."""

    encrypt_key: str | None = None
    smtp_username: str | None = None
    smtp_password: str | None = None
    storage_access_key_id: str | None = None
    storage_secret_access_key: str | None = None

    @classmethod
    def from_env(cls) -> "Secrets":
        return cls(
            encrypt_key=environ.get("ENCRYPT_KEY") or None,
            smtp_username=environ.get("SMTP_USERNAME") or None,
            smtp_password=environ.get("SMTP_PASSWORD") or None,
            storage_access_key_id=environ.get("OS_ACCESS_KEY_ID") or None,
            storage_secret_access_key=environ.get("OS_SECRET_ACCESS_KEY") or None,
        )


def _merge(base: dict, overlay: dict) -> dict:
    merged = dict(base)
    for key, value in overlay.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(
    shared_config_file: PathLike = DEFAULT_CONFIG_PATH,
    specific_config_file: PathLike | None = None,
) -> Config:
    """Load and merge configurations from TOML files.

    When no specific file is given, the path in ``ORDERDESK_CONFIG`` is used
    as the overlay if set.
    """
    with Path(shared_config_file).open("rb") as f:
        config_data = load(f)

    if specific_config_file is None:
        specific_config_file = environ.get(OVERLAY_ENV_VAR) or None

    if specific_config_file:
        with Path(specific_config_file).open("rb") as f:
            specific_data = load(f)
            config_data = _merge(config_data, specific_data)

    return Config(**config_data)
