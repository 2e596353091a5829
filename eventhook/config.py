"""Configuration management with Pydantic Settings + optional YAML."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from eventhook.core.duration import coerce_duration
from eventhook.errors import ConfigError

DEFAULT_METHOD = "POST"
DEFAULT_TIMEOUT = 30.0


# ---------------------------------------------------------------------------
# Per-webhook config
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class WebhookConfig:
    """Resolved, read-only settings for one webhook target.

    Build through WebhookConfigBuilder so defaults and validation apply.
    """

    url: str
    method: str = DEFAULT_METHOD
    headers: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    timeout: float = DEFAULT_TIMEOUT
    event_name: str | None = None
    user_agent: str | None = None
    # Apply Content-Type after custom headers so they cannot replace it
    enforce_content_type: bool = False
    follow_redirects: bool = True


class WebhookConfigBuilder:
    """Accumulates webhook directives, then freezes them with build()."""

    def __init__(self, url: str | None = None) -> None:
        self._url = url
        self._method: str | None = None
        self._headers: dict[str, str] = {}
        self._timeout: float | None = None
        self._event_name: str | None = None
        self._user_agent: str | None = None
        self._enforce_content_type = False
        self._follow_redirects = True

    def url(self, url: str) -> WebhookConfigBuilder:
        self._url = url
        return self

    def method(self, method: str) -> WebhookConfigBuilder:
        self._method = method
        return self

    def header(self, name: str, value: str) -> WebhookConfigBuilder:
        if not isinstance(name, str) or not name.strip():
            raise ConfigError(f"invalid header directive: empty header name for value {value!r}")
        if not isinstance(value, str):
            raise ConfigError(f"invalid header directive: value for {name!r} must be a string")
        # Later entries for the same name replace earlier ones
        self._headers[name.strip()] = value
        return self

    def header_line(self, line: str) -> WebhookConfigBuilder:
        """Add a header given as 'Name: value'."""
        name, sep, value = line.partition(":")
        if not sep:
            raise ConfigError(f"invalid header directive {line!r}: expected 'Name: value'")
        return self.header(name, value.strip())

    def timeout(self, value: str | int | float | None) -> WebhookConfigBuilder:
        self._timeout = coerce_duration(value)
        return self

    def event_name(self, name: str | None) -> WebhookConfigBuilder:
        self._event_name = name or None
        return self

    def user_agent(self, value: str | None) -> WebhookConfigBuilder:
        self._user_agent = value or None
        return self

    def enforce_content_type(self, enabled: bool = True) -> WebhookConfigBuilder:
        self._enforce_content_type = enabled
        return self

    def follow_redirects(self, enabled: bool = True) -> WebhookConfigBuilder:
        self._follow_redirects = enabled
        return self

    def build(self) -> WebhookConfig:
        url = (self._url or "").strip()
        if not url:
            raise ConfigError("webhook URL is required")

        timeout = self._timeout or DEFAULT_TIMEOUT
        if timeout < 0:
            raise ConfigError(f"invalid timeout duration: must not be negative, got {timeout}s")

        return WebhookConfig(
            url=url,
            method=self._method or DEFAULT_METHOD,
            headers=MappingProxyType(dict(self._headers)),
            timeout=timeout,
            event_name=self._event_name,
            user_agent=self._user_agent,
            enforce_content_type=self._enforce_content_type,
            follow_redirects=self._follow_redirects,
        )


class WebhookSettings(BaseModel):
    """One entry of the `webhooks:` list in the config file."""

    model_config = ConfigDict(extra="forbid")

    url: str = ""
    event: str | None = None
    method: str = ""
    headers: dict[str, str] | list[str] = Field(default_factory=dict)
    timeout: str | float | None = None
    user_agent: str | None = None
    enforce_content_type: bool = False
    follow_redirects: bool = True

    def to_config(self) -> WebhookConfig:
        builder = (
            WebhookConfigBuilder(self.url)
            .method(self.method)
            .timeout(self.timeout)
            .event_name(self.event)
            .user_agent(self.user_agent)
            .enforce_content_type(self.enforce_content_type)
            .follow_redirects(self.follow_redirects)
        )
        if isinstance(self.headers, dict):
            for name, value in self.headers.items():
                builder.header(name, value)
        else:
            for line in self.headers:
                builder.header_line(line)
        return builder.build()


# ---------------------------------------------------------------------------
# Application settings
# ---------------------------------------------------------------------------

class DispatcherSettings(BaseModel):
    max_workers: int = Field(default=8, ge=1)
    max_pending: int = Field(default=1024, ge=1)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="EVENTHOOK_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    webhooks: list[WebhookSettings] = Field(default_factory=list)
    dispatcher: DispatcherSettings = Field(default_factory=DispatcherSettings)
    log_level: str = "INFO"
    log_json: bool = False

    def webhook_configs(self) -> list[WebhookConfig]:
        """Resolve every webhook entry, raising ConfigError on the first bad one."""
        configs: list[WebhookConfig] = []
        for index, entry in enumerate(self.webhooks):
            try:
                configs.append(entry.to_config())
            except ConfigError as e:
                raise ConfigError(f"webhooks[{index}]: {e}") from e
        return configs


def default_config_path() -> Path:
    """Per-user config.yaml; EVENTHOOK_CONFIG_DIR replaces the directory."""
    override = os.environ.get("EVENTHOOK_CONFIG_DIR")
    if override:
        return Path(override) / "config.yaml"
    if sys.platform == "win32":
        base = Path(os.environ.get("APPDATA", Path.home() / "AppData" / "Roaming"))
    elif sys.platform == "darwin":
        base = Path.home() / "Library" / "Application Support"
    else:
        base = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    return base / "eventhook" / "config.yaml"


def load_settings(config_path: str | Path | None = None) -> Settings:
    """Load settings from env vars, optionally overlaying a YAML config."""
    yaml_data: dict[str, Any] = {}

    # Determine config file path
    if config_path is None:
        config_path = os.environ.get("EVENTHOOK_CONFIG")
    if config_path is None:
        default = default_config_path()
        if default.exists():
            config_path = default

    # Load YAML if found
    if config_path is not None:
        path = Path(config_path)
        if not path.exists():
            raise ConfigError(f"config file not found: {path}")
        try:
            with open(path, encoding="utf-8") as f:
                yaml_data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"invalid YAML in {path}: {e}") from e
        if not isinstance(yaml_data, dict):
            raise ConfigError(f"{path}: top level must be a mapping")

    # Init kwargs outrank env vars, so YAML wins where both are set
    try:
        settings = Settings(**yaml_data)
    except ValidationError as e:
        raise ConfigError(f"invalid configuration: {e}") from e

    # Surface bad webhook entries now rather than on first event
    settings.webhook_configs()
    return settings
