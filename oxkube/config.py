"""Configuration loading from environment variables."""

from __future__ import annotations

import os

from oxkube.models.config import (
    ConsumerConfig,
    LogConfig,
    OnixConfig,
    OxKubeConfig,
    WebhookConfig,
)

_AUTH_MODES = {"none", "basic", "oidc"}
_WEBHOOK_AUTH_MODES = {"none", "basic"}


def _env(key: str, default: str = "") -> str:
    return os.environ.get(f"OXKU_{key}", default)


def _env_bool(key: str, default: bool = False) -> bool:
    val = _env(key, str(default).lower())
    return val.lower() in ("true", "1", "yes")


def _env_int(key: str, default: int, min_val: int | None = None, max_val: int | None = None) -> int:
    val = int(_env(key, str(default)))
    if min_val is not None:
        val = max(val, min_val)
    if max_val is not None:
        val = min(val, max_val)
    return val


def _validate_log_level(value: str) -> str:
    valid = {"debug", "info", "warning", "error"}
    if value.lower() not in valid:
        raise ValueError(f"Invalid log level: {value}. Must be one of {valid}")
    return value.lower()


def _validate_choice(name: str, value: str, valid: set[str]) -> str:
    if value.lower() not in valid:
        raise ValueError(f"Invalid {name}: {value}. Must be one of {valid}")
    return value.lower()


def _validate_consumer(value: str) -> str:
    value = value.lower()
    if value == "broker":
        raise ValueError("Consumer 'broker' is not implemented. Use 'webhook'.")
    return _validate_choice("consumer", value, {"webhook"})


def _validate_port(value: int) -> int:
    if not 1 <= value <= 65535:
        raise ValueError(f"Invalid webhook port: {value}. Must be between 1 and 65535")
    return value


def _validate_url(value: str) -> str:
    if not value.startswith(("http://", "https://")):
        raise ValueError(f"Invalid Onix URL: {value}. Must start with http:// or https://")
    return value.rstrip("/")


def load_config() -> OxKubeConfig:
    """Load configuration from OXKU_* environment variables."""
    onix = OnixConfig(
        url=_validate_url(_env("ONIX_URL", "http://localhost:8080")),
        auth_mode=_validate_choice("Onix auth mode", _env("ONIX_AUTHMODE", "basic"), _AUTH_MODES),
        username=_env("ONIX_USERNAME", "admin"),
        password=_env("ONIX_PASSWORD", "0n1x"),
        token_uri=_env("ONIX_TOKENURI", ""),
        client_id=_env("ONIX_CLIENTID", ""),
        app_secret=_env("ONIX_APPSECRET", ""),
        timeout_seconds=_env_int("ONIX_TIMEOUT", 30, min_val=5, max_val=300),
    )
    if onix.auth_mode == "oidc" and not onix.token_uri:
        raise ValueError("OXKU_ONIX_TOKENURI is required when OXKU_ONIX_AUTHMODE=oidc")

    webhook = WebhookConfig(
        port=_validate_port(_env_int("CONSUMERS_WEBHOOK_PORT", 8000)),
        path=_env("CONSUMERS_WEBHOOK_PATH", "webhook").strip("/") or "webhook",
        auth_mode=_validate_choice(
            "webhook auth mode", _env("CONSUMERS_WEBHOOK_AUTHMODE", "none"), _WEBHOOK_AUTH_MODES
        ),
        username=_env("CONSUMERS_WEBHOOK_USERNAME", ""),
        password=_env("CONSUMERS_WEBHOOK_PASSWORD", ""),
    )

    return OxKubeConfig(
        id=_env("ID", "oxkube"),
        metrics=_env_bool("METRICS", True),
        onix=onix,
        consumers=ConsumerConfig(
            consumer=_validate_consumer(_env("CONSUMERS_CONSUMER", "webhook")),
            webhook=webhook,
        ),
        log=LogConfig(
            level=_validate_log_level(_env("LOG_LEVEL", "info")),
        ),
    )
