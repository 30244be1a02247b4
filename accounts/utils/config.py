"""
Configuration loading for the accounts service.

Sources, lowest to highest precedence:
- config/settings.yaml (or CONFIG_FILE), with ${VAR} / ${VAR:default} substitution
- environment variables (a .env file is loaded first)

A missing signing secret or database URL is fatal: load_settings() raises
ConfigError and the process must not start serving.
"""

import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field
from pydantic import ValidationError as SchemaError

from .exceptions import ConfigError

DEFAULT_CONFIG_FILE = Path("config") / "settings.yaml"


class AppSettings(BaseModel):
    name: str = "Storefront Accounts"
    environment: str = "development"
    cors_origins: List[str] = Field(default_factory=list)


class DatabaseSettings(BaseModel):
    url: str = ""
    connect_attempts: int = 3
    write_timeout_seconds: float = 10.0


class AuthSettings(BaseModel):
    session_ttl_hours: int = 24
    otp_ttl_minutes: int = 10
    bcrypt_rounds: int = 10
    max_login_attempts: int = 3
    login_cooldown_seconds: int = 60
    cookie_name: str = "authToken"
    login_path: str = "/login"
    landing_path: str = "/dashboard"
    admin_home_path: str = "/admin"


class MailSettings(BaseModel):
    backend: str = Field(default="smtp", pattern="^(smtp|console)$")
    host: str = "smtp.gmail.com"
    port: int = 465
    username: Optional[str] = None
    password: Optional[str] = None
    use_ssl: bool = True
    from_address: Optional[str] = None
    timeout: float = 10.0


class LoggingSettings(BaseModel):
    level: str = "INFO"
    format: str = "json"
    file_path: Optional[str] = None
    max_bytes: int = 10485760
    backup_count: int = 5


class Settings(BaseModel):
    app: AppSettings = Field(default_factory=AppSettings)
    secret_key: str = ""
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    auth: AuthSettings = Field(default_factory=AuthSettings)
    mail: MailSettings = Field(default_factory=MailSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @property
    def is_production(self) -> bool:
        return self.app.environment.strip().lower() == "production"


# env var -> (section, key); section None means top level
ENV_OVERRIDES = {
    "SESSION_SECRET": (None, "secret_key"),
    "JWT_SECRET": (None, "secret_key"),
    "DATABASE_URL": ("database", "url"),
    "ENVIRONMENT": ("app", "environment"),
    "LOG_LEVEL": ("logging", "level"),
    "LOG_FORMAT": ("logging", "format"),
    "LOG_FILE": ("logging", "file_path"),
    "MAIL_BACKEND": ("mail", "backend"),
    "SMTP_HOST": ("mail", "host"),
    "SMTP_PORT": ("mail", "port"),
    "SMTP_USER": ("mail", "username"),
    "SMTP_PASSWORD": ("mail", "password"),
    "MAIL_FROM": ("mail", "from_address"),
}


def _substitute_env_vars(value: Any, context: str = "") -> Any:
    """Recursively substitute ${VAR} and ${VAR:default} in config values"""
    if isinstance(value, str):
        if value.startswith("${") and value.endswith("}"):
            var_expr = value[2:-1]
            if ":" in var_expr:
                var_name, default = var_expr.split(":", 1)
                return os.getenv(var_name.strip(), default.strip())
            env_value = os.getenv(var_expr)
            if env_value is None:
                error_msg = f"Environment variable {var_expr} not found"
                if context:
                    error_msg += f" (context: {context})"
                raise ConfigError(error_msg)
            return env_value
    elif isinstance(value, dict):
        return {
            k: _substitute_env_vars(v, context=f"{context}.{k}" if context else k)
            for k, v in value.items()
        }
    elif isinstance(value, list):
        return [
            _substitute_env_vars(item, context=f"{context}[{i}]" if context else f"[{i}]")
            for i, item in enumerate(value)
        ]
    return value


def _read_yaml(path: Path) -> Dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Failed to read settings file {path}: {e}")
    if not isinstance(raw, dict):
        raise ConfigError(f"Settings file {path} must contain a mapping")
    return _substitute_env_vars(raw)


def _apply_env_overrides(data: Dict[str, Any]) -> Dict[str, Any]:
    for env_name, (section, key) in ENV_OVERRIDES.items():
        value = os.getenv(env_name)
        if value is None or value == "":
            continue
        if section is None:
            # SESSION_SECRET wins over the JWT_SECRET alias
            if key == "secret_key" and env_name == "JWT_SECRET" and os.getenv("SESSION_SECRET"):
                continue
            data[key] = value
        else:
            data.setdefault(section, {})
            data[section][key] = value
    return data


def load_settings(config_path: Optional[Union[str, Path]] = None, use_dotenv: bool = True) -> Settings:
    """Load, validate and return settings; raises ConfigError when unusable"""
    if use_dotenv:
        load_dotenv()

    if config_path is None:
        config_path = os.getenv("CONFIG_FILE") or DEFAULT_CONFIG_FILE
    path = Path(config_path)
    data: Dict[str, Any] = _read_yaml(path) if path.exists() else {}
    data = _apply_env_overrides(data)

    try:
        settings = Settings(**data)
    except SchemaError as e:
        raise ConfigError(f"Invalid settings: {e}")

    if not (settings.secret_key or "").strip():
        raise ConfigError("SESSION_SECRET must be set; refusing to start without a signing secret")
    if not (settings.database.url or "").strip():
        raise ConfigError("DATABASE_URL must be set; refusing to start without a database")
    return settings
