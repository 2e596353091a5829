"""Fire-and-forget webhook delivery for events."""

from __future__ import annotations

import asyncio

import httpx

from eventhook.config import WebhookConfig
from eventhook.core.bus import Event
from eventhook.utils.logging import get_logger
from eventhook.webhooks.payload import build_payload, encode_payload

log = get_logger(__name__)

CONTENT_TYPE = "application/json"


def build_headers(config: WebhookConfig) -> httpx.Headers:
    """Request headers in application order; later names replace earlier ones."""
    headers = httpx.Headers()
    if config.user_agent:
        headers["User-Agent"] = config.user_agent
    if not config.enforce_content_type:
        headers["Content-Type"] = CONTENT_TYPE
    for name, value in config.headers.items():
        headers[name] = value
    if config.enforce_content_type:
        headers["Content-Type"] = CONTENT_TYPE
    return headers


# ---------------------------------------------------------------------------
# Single delivery
# ---------------------------------------------------------------------------

async def deliver(
    event: Event,
    config: WebhookConfig,
    client: httpx.AsyncClient | None = None,
) -> None:
    """Send one event to config.url and log the outcome.

    Nothing is returned or raised for delivery problems: serialization,
    request and transport failures are logged as errors, non-2xx replies
    as warnings.
    """
    if client is None:
        async with httpx.AsyncClient() as own_client:
            await _deliver(event, config, own_client)
        return
    await _deliver(event, config, client)


async def _deliver(event: Event, config: WebhookConfig, client: httpx.AsyncClient) -> None:
    try:
        body = encode_payload(build_payload(event))
    except (TypeError, ValueError) as e:
        log.error(
            "webhook_payload_serialization_failed",
            event_name=event.name,
            error=str(e),
        )
        return

    try:
        request = client.build_request(
            config.method,
            config.url,
            content=body,
            headers=build_headers(config),
            timeout=config.timeout,
        )
    except (httpx.InvalidURL, ValueError, TypeError) as e:
        log.error(
            "webhook_request_invalid",
            event_name=event.name,
            url=config.url,
            error=str(e),
        )
        return

    try:
        # Deadline covers connect, send and reading the whole body
        response = await asyncio.wait_for(
            client.send(request, follow_redirects=config.follow_redirects),
            timeout=config.timeout,
        )
    except asyncio.TimeoutError:
        log.error(
            "webhook_delivery_failed",
            event_name=event.name,
            url=config.url,
            error=f"timed out after {config.timeout}s",
        )
        return
    except httpx.HTTPError as e:
        log.error(
            "webhook_delivery_failed",
            event_name=event.name,
            url=config.url,
            error=str(e) or type(e).__name__,
        )
        return

    if response.is_success:
        log.debug(
            "webhook_delivered",
            event_name=event.name,
            status=response.status_code,
            url=config.url,
        )
    else:
        log.warning(
            "webhook_non_success_status",
            event_name=event.name,
            status=response.status_code,
            url=config.url,
            response=response.text,
        )


# ---------------------------------------------------------------------------
# Dispatcher service
# ---------------------------------------------------------------------------

class WebhookDispatcher:
    """Hands events to a bounded worker pool that delivers them.

    handle() is the entry point for event sources: it returns immediately
    and never raises. Delivery order between events is not guaranteed.
    """

    def __init__(
        self,
        config: WebhookConfig,
        max_workers: int = 8,
        max_pending: int = 1024,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.config = config
        self._max_workers = max_workers
        self._max_pending = max_pending
        self._client = client
        self._owns_client = client is None
        self._queue: asyncio.Queue[Event] | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._workers: list[asyncio.Task[None]] = []

    @property
    def running(self) -> bool:
        return self._loop is not None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        if self.running:
            return
        self._loop = asyncio.get_running_loop()
        self._queue = asyncio.Queue(maxsize=self._max_pending)
        if self._client is None:
            self._client = httpx.AsyncClient()
        for i in range(self._max_workers):
            self._workers.append(
                asyncio.create_task(self._worker(), name=f"webhook-worker-{i}")
            )
        log.info(
            "webhook_dispatcher_started",
            url=self.config.url,
            event_filter=self.config.event_name,
            workers=self._max_workers,
        )

    async def stop(self) -> None:
        """Stop workers. Queued and in-flight deliveries are abandoned."""
        if not self.running:
            return
        self._loop = None
        for task in self._workers:
            task.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers.clear()
        abandoned = self._queue.qsize() if self._queue else 0
        self._queue = None
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None
        log.info("webhook_dispatcher_stopped", url=self.config.url, abandoned=abandoned)

    async def join(self) -> None:
        """Wait until every queued event has been delivered or dropped."""
        if self._queue is not None:
            await self._queue.join()

    # ------------------------------------------------------------------
    # Event entry points
    # ------------------------------------------------------------------

    def accepts(self, event: Event) -> bool:
        return self.config.event_name is None or event.name == self.config.event_name

    def handle(self, event: Event) -> None:
        """Schedule delivery of event without waiting for it."""
        if not self.accepts(event):
            log.debug(
                "webhook_event_filtered",
                event_name=event.name,
                event_filter=self.config.event_name,
            )
            return

        log.debug("handling_event", event_name=event.name, webhook_url=self.config.url)

        loop = self._loop
        if loop is None:
            log.warning("webhook_dispatcher_not_running", event_name=event.name, url=self.config.url)
            return

        try:
            current = asyncio.get_running_loop()
        except RuntimeError:
            current = None

        if current is loop:
            self._enqueue(event)
            return
        try:
            loop.call_soon_threadsafe(self._enqueue, event)
        except RuntimeError:
            log.warning("webhook_dispatcher_not_running", event_name=event.name, url=self.config.url)

    async def __call__(self, event: Event) -> None:
        self.handle(event)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _enqueue(self, event: Event) -> None:
        if self._queue is None:
            log.warning("webhook_dispatcher_not_running", event_name=event.name, url=self.config.url)
            return
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            log.warning(
                "webhook_queue_full",
                event_name=event.name,
                url=self.config.url,
                max_pending=self._max_pending,
            )

    async def _worker(self) -> None:
        assert self._queue is not None
        queue = self._queue
        while True:
            event = await queue.get()
            try:
                await deliver(event, self.config, self._client)
            except Exception:
                log.exception("webhook_dispatch_error", event_name=event.name, url=self.config.url)
            finally:
                queue.task_done()
