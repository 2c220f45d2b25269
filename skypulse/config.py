from __future__ import annotations

from dataclasses import dataclass, field
import os
from typing import Any

import yaml

from .notifiers.message import DEFAULT_CHANNEL_ID, DEFAULT_CLICK_ACTION
from .topics import CITY_TOPIC_SUFFIX, GLOBAL_TOPIC


TRANSPORTS = {"sdk", "rest"}


@dataclass
class ProviderConfig:
    transport: str
    project_id: str
    service_account_b64: str | None = field(default=None, repr=False)
    credentials_path: str | None = None
    endpoint_base_url: str = "https://fcm.googleapis.com"
    token_url: str = "https://oauth2.googleapis.com/token"
    cache_tokens: bool = True


@dataclass
class TopicsConfig:
    global_topic: str = GLOBAL_TOPIC
    city_suffix: str = CITY_TOPIC_SUFFIX


@dataclass
class DispatchConfig:
    notify_severities: list[str] = field(default_factory=lambda: ["high", "critical"])
    android_channel_id: str = DEFAULT_CHANNEL_ID
    click_action: str = DEFAULT_CLICK_ACTION


@dataclass
class Settings:
    request_timeout_seconds: int = 10
    user_agent: str = "skypulse/0.1"


@dataclass
class ServerConfig:
    host: str = "127.0.0.1"
    port: int = 8080


@dataclass
class Config:
    provider: ProviderConfig
    topics: TopicsConfig
    dispatch: DispatchConfig
    settings: Settings
    server: ServerConfig


def _expand_env(value: Any) -> Any:
    if isinstance(value, str):
        return os.path.expandvars(value)
    if isinstance(value, list):
        return [_expand_env(item) for item in value]
    if isinstance(value, dict):
        return {key: _expand_env(val) for key, val in value.items()}
    return value


def _require_dict(value: Any, name: str) -> dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValueError(f"{name} must be a mapping")
    return value


def _require_list(value: Any, name: str) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError(f"{name} must be a list")
    return [str(item) for item in value]


def load_config(path: str) -> Config:
    with open(path, "r", encoding="utf-8") as handle:
        raw = yaml.safe_load(handle) or {}
    return parse_config(raw)


def parse_config(raw: Any) -> Config:
    data = _expand_env(raw)
    if not isinstance(data, dict):
        raise ValueError("Config root must be a mapping")

    settings_raw = _require_dict(data.get("settings"), "settings")
    timeout = int(settings_raw.get("request_timeout_seconds", 10))
    if timeout <= 0:
        raise ValueError("settings.request_timeout_seconds must be > 0")
    settings = Settings(
        request_timeout_seconds=timeout,
        user_agent=str(settings_raw.get("user_agent", "skypulse/0.1")),
    )

    server_raw = _require_dict(data.get("server"), "server")
    server = ServerConfig(
        host=str(server_raw.get("host", "127.0.0.1")),
        port=int(server_raw.get("port", 8080)),
    )

    return Config(
        provider=_load_provider(_require_dict(data.get("provider"), "provider")),
        topics=_load_topics(_require_dict(data.get("topics"), "topics")),
        dispatch=_load_dispatch(_require_dict(data.get("dispatch"), "dispatch")),
        settings=settings,
        server=server,
    )


def _load_provider(raw: dict[str, Any]) -> ProviderConfig:
    transport = str(raw.get("transport", "sdk")).lower()
    if transport not in TRANSPORTS:
        raise ValueError("provider.transport must be 'sdk' or 'rest'")
    project_id = raw.get("project_id")
    if not project_id or "${" in str(project_id):
        raise ValueError("provider.project_id is required")

    service_account = _normalize_secret(raw.get("service_account_b64"))
    credentials_path = _normalize_secret(raw.get("credentials_path"))
    if transport == "rest" and not service_account:
        raise ValueError("provider.service_account_b64 is required for the rest transport")
    if transport == "sdk" and not (service_account or credentials_path):
        raise ValueError("provider.credentials_path or provider.service_account_b64 is required")

    return ProviderConfig(
        transport=transport,
        project_id=str(project_id),
        service_account_b64=service_account,
        credentials_path=credentials_path,
        endpoint_base_url=_require_url(
            raw.get("endpoint_base_url", "https://fcm.googleapis.com"), "provider.endpoint_base_url"
        ),
        token_url=_require_url(
            raw.get("token_url", "https://oauth2.googleapis.com/token"), "provider.token_url"
        ),
        cache_tokens=bool(raw.get("cache_tokens", True)),
    )


def _load_topics(raw: dict[str, Any]) -> TopicsConfig:
    global_topic = str(raw.get("global_topic", GLOBAL_TOPIC)).strip()
    if not global_topic:
        raise ValueError("topics.global_topic must not be empty")
    return TopicsConfig(
        global_topic=global_topic,
        city_suffix=str(raw.get("city_suffix", CITY_TOPIC_SUFFIX)),
    )


def _load_dispatch(raw: dict[str, Any]) -> DispatchConfig:
    severities = _require_list(raw.get("notify_severities"), "dispatch.notify_severities")
    allowed = {"low", "medium", "high", "critical"}
    normalized = [item.lower() for item in severities] or ["high", "critical"]
    unknown = [item for item in normalized if item not in allowed]
    if unknown:
        raise ValueError(f"dispatch.notify_severities has unknown values: {', '.join(unknown)}")
    return DispatchConfig(
        notify_severities=normalized,
        android_channel_id=str(raw.get("android_channel_id", DEFAULT_CHANNEL_ID)),
        click_action=str(raw.get("click_action", DEFAULT_CLICK_ACTION)),
    )


def _normalize_secret(value: Any) -> str | None:
    if not value or not isinstance(value, str):
        return None
    if "${" in value:
        return None
    return value.strip()


def _require_url(value: Any, name: str) -> str:
    if not isinstance(value, str) or not (value.startswith("http://") or value.startswith("https://")):
        raise ValueError(f"{name} must be an http(s) URL")
    return value
