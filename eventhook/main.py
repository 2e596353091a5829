"""eventhook entry point: wires the event bus to webhook dispatchers."""

from __future__ import annotations

import asyncio
import json
from typing import Any

import click

from eventhook.config import DispatcherSettings, Settings, WebhookConfig, WebhookConfigBuilder, load_settings
from eventhook.core.bus import ALL_EVENTS, Event, EventBus
from eventhook.errors import ConfigError
from eventhook.utils.logging import get_logger, setup_logging
from eventhook.webhooks.dispatcher import WebhookDispatcher

log = get_logger(__name__)


class EventBridge:
    """Forwards every event published on the bus to the configured webhooks."""

    def __init__(
        self,
        webhooks: list[WebhookConfig],
        dispatcher_settings: DispatcherSettings | None = None,
        bus: EventBus | None = None,
    ) -> None:
        pool = dispatcher_settings or DispatcherSettings()
        self.bus = bus or EventBus()
        self.dispatchers = [
            WebhookDispatcher(
                config,
                max_workers=pool.max_workers,
                max_pending=pool.max_pending,
            )
            for config in webhooks
        ]
        # One subscription per dispatcher for the bridge lifetime, across restarts.
        # Each dispatcher applies its own event-name filter.
        for dispatcher in self.dispatchers:
            self.bus.subscribe(ALL_EVENTS, dispatcher)

    @classmethod
    def from_settings(cls, settings: Settings) -> EventBridge:
        return cls(settings.webhook_configs(), settings.dispatcher)

    async def start(self) -> None:
        log.info("eventhook_starting", webhooks=len(self.dispatchers))
        for dispatcher in self.dispatchers:
            await dispatcher.start()
        await self.bus.start()
        log.info("eventhook_ready")

    async def stop(self) -> None:
        log.info("eventhook_stopping")
        await self.bus.stop()
        for dispatcher in self.dispatchers:
            await dispatcher.stop()
        log.info("eventhook_stopped")

    async def emit(self, name: str, data: dict[str, Any] | None = None) -> Event:
        event = Event(name=name, data=data)
        await self.bus.publish(event)
        return event

    async def drain(self) -> None:
        """Wait for the bus and every dispatcher queue to empty."""
        await self.bus.drain()
        for dispatcher in self.dispatchers:
            await dispatcher.join()


async def emit_once(bridge: EventBridge, name: str, data: dict[str, Any] | None) -> None:
    await bridge.start()
    try:
        event = await bridge.emit(name, data)
        log.info("event_emitted", event_name=event.name, event_id=event.id)
        await bridge.drain()
    finally:
        await bridge.stop()


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

def _load(config_path: str | None, log_level: str | None) -> Settings:
    try:
        settings = load_settings(config_path)
    except ConfigError as e:
        raise click.UsageError(str(e)) from e
    if log_level:
        settings.log_level = log_level
    setup_logging(level=settings.log_level, json_output=settings.log_json)
    return settings


@click.group()
def cli() -> None:
    """Deliver host events to HTTP webhooks."""


@cli.command()
@click.argument("event_name")
@click.option("--data", "data_json", default=None, help="Event data as a JSON object")
@click.option("--url", default=None, help="Webhook URL; replaces configured webhooks")
@click.option("-X", "--method", default=None, help="HTTP method for --url (default POST)")
@click.option("-H", "--header", "headers", multiple=True, help="Header for --url as 'Name: value'")
@click.option("--timeout", default=None, help="Timeout for --url, e.g. 10s or 1m30s")
@click.option("--config", "config_path", default=None, help="Path to config YAML file")
@click.option("--log-level", default=None, help="Log level (DEBUG, INFO, WARNING, ERROR)")
def emit(
    event_name: str,
    data_json: str | None,
    url: str | None,
    method: str | None,
    headers: tuple[str, ...],
    timeout: str | None,
    config_path: str | None,
    log_level: str | None,
) -> None:
    """Emit one event and wait for its webhook deliveries."""
    settings = _load(config_path, log_level)

    data: dict[str, Any] | None = None
    if data_json is not None:
        try:
            data = json.loads(data_json)
        except json.JSONDecodeError as e:
            raise click.BadParameter(f"not valid JSON: {e}", param_hint="--data") from e
        if not isinstance(data, dict):
            raise click.BadParameter("must be a JSON object", param_hint="--data")

    if url is not None:
        try:
            builder = WebhookConfigBuilder(url).method(method or "").timeout(timeout)
            for line in headers:
                builder.header_line(line)
            config = builder.build()
        except ConfigError as e:
            raise click.UsageError(str(e)) from e
        bridge = EventBridge([config], settings.dispatcher)
    elif settings.webhooks:
        bridge = EventBridge.from_settings(settings)
    else:
        raise click.UsageError("no webhooks configured; pass --url or a config file")

    asyncio.run(emit_once(bridge, event_name, data))


@cli.command()
@click.option("--config", "config_path", default=None, help="Path to config YAML file")
def check(config_path: str | None) -> None:
    """Validate configuration and list the configured webhooks."""
    try:
        settings = load_settings(config_path)
        configs = settings.webhook_configs()
    except ConfigError as e:
        raise click.UsageError(str(e)) from e

    if not configs:
        click.echo("No webhooks configured.")
        return
    for config in configs:
        scope = config.event_name or ALL_EVENTS
        click.echo(f"{config.method} {config.url} events={scope} timeout={config.timeout:g}s")


if __name__ == "__main__":
    cli()
