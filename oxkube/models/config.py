"""Configuration data structures."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class OnixConfig:
    """Connection settings for the Onix CMDB web API."""

    url: str = "http://localhost:8080"
    auth_mode: str = "basic"
    username: str = "admin"
    password: str = "0n1x"
    token_uri: str = ""
    client_id: str = ""
    app_secret: str = ""
    timeout_seconds: int = 30


@dataclass(frozen=True)
class WebhookConfig:
    """Inbound webhook listener configuration."""

    port: int = 8000
    path: str = "webhook"
    auth_mode: str = "none"
    username: str = ""
    password: str = ""


@dataclass(frozen=True)
class ConsumerConfig:
    """Selects how change events are received."""

    consumer: str = "webhook"
    webhook: WebhookConfig = field(default_factory=WebhookConfig)


@dataclass(frozen=True)
class LogConfig:
    """Logging configuration."""

    level: str = "info"


@dataclass(frozen=True)
class OxKubeConfig:
    """Top-level OxKube configuration."""

    id: str = "oxkube"
    metrics: bool = True
    onix: OnixConfig = field(default_factory=OnixConfig)
    consumers: ConsumerConfig = field(default_factory=ConsumerConfig)
    log: LogConfig = field(default_factory=LogConfig)
