import os
from dataclasses import dataclass, field, fields, is_dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

# Load .env only once when this file is imported
env_path = Path(__file__).parent / ".env"
load_dotenv(dotenv_path=env_path)


@dataclass
class ApiConfig:
    """Where the admin tools reach the billing backend."""
    base_url: str = "http://localhost:8000"
    timeout_seconds: float = 15.0
    token: Optional[str] = None


@dataclass
class DatabaseConfig:
    """MongoDB connection used by the HTTP API."""
    url: Optional[str] = None
    name: Optional[str] = None


@dataclass
class BillingDefaults:
    """Form defaults for a fresh bill."""
    currency: str = "INR"
    making_charges_percent: str = "12.0"
    gst_percent: str = "3.0"
    vat_percent: str = "10.0"


@dataclass
class LoggingConfig:
    level: str = "INFO"
    log_dir: str = "logs"
    config_path: Optional[str] = None


@dataclass
class AppSettings:
    """Main application configuration."""
    api: ApiConfig = field(default_factory=ApiConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    billing: BillingDefaults = field(default_factory=BillingDefaults)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


ENV_OVERRIDES = {
    ("api", "base_url"): "PJ_API_URL",
    ("api", "token"): "PJ_API_TOKEN",
    ("api", "timeout_seconds"): "PJ_API_TIMEOUT",
    ("database", "url"): "DATABASE_URL",
    ("database", "name"): "DATABASE_NAME",
    ("billing", "currency"): "PJ_CURRENCY",
    ("logging", "level"): "LOG_LEVEL",
    ("logging", "log_dir"): "LOG_DIR",
}


def _build(cls, data: Optional[Dict[str, Any]]):
    data = data or {}
    kwargs = {}
    for f in fields(cls):
        if f.name not in data:
            continue
        value = data[f.name]
        if isinstance(f.default_factory, type) and is_dataclass(f.default_factory):
            value = _build(f.default_factory, value)
        kwargs[f.name] = value
    return cls(**kwargs)


def load_settings(config_path: str = "config/settings.yaml") -> AppSettings:
    """Load configuration from the YAML file, then apply environment overrides."""
    if Path(config_path).exists():
        with open(config_path, 'r') as f:
            config_data = yaml.safe_load(f) or {}
        settings = _build(AppSettings, config_data)
    else:
        settings = AppSettings()

    for (section, key), env_name in ENV_OVERRIDES.items():
        value = os.getenv(env_name)
        if value is None or value == "":
            continue
        if key == "timeout_seconds":
            value = float(value)
        setattr(getattr(settings, section), key, value)

    return settings
