"""
Event intake — the inbound half of the Slack integration.

An `EventSource` delivers raw envelopes from the event bus; `EventIntake`
turns them into the closed `InboundEvent` variant the arbiter consumes and
makes sure each envelope is acknowledged exactly once.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, AsyncIterator, Awaitable, Callable

from pydantic import BaseModel, Field
from slack_sdk.socket_mode.aiohttp import SocketModeClient
from slack_sdk.socket_mode.response import SocketModeResponse
from slack_sdk.web.async_client import AsyncWebClient

from fusebot.models import (
    DisconnectEvent,
    InboundEvent,
    InteractionEvent,
    MessageHandle,
    OtherEvent,
)

logger = logging.getLogger(__name__)


class RawEnvelope(BaseModel):
    """A message as delivered by the event bus, before classification."""

    type: str
    envelope_id: str = ""
    payload: dict[str, Any] = Field(default_factory=dict)


class EventSource(ABC):
    """Base class for event bus connections."""

    name: str = "unnamed"

    @abstractmethod
    async def connect(self) -> None:
        """Open the connection. Raises if no usable connection is possible."""

    @abstractmethod
    async def disconnect(self) -> None:
        """Close the connection; pending `receive()` calls return None."""

    @abstractmethod
    async def receive(self) -> RawEnvelope | None:
        """Next envelope, or None once the source is exhausted."""

    @abstractmethod
    async def ack(self, envelope_id: str) -> None:
        """Acknowledge an envelope back to the bus."""


class StreamReportingClient(SocketModeClient):
    """
    SocketModeClient that reports a lost connection instead of replacing it.

    slack_sdk routes both the server's `disconnect` frame and a dead session
    noticed by its monitor through `connect_to_new_endpoint`. Neither ever
    reaches the message listeners, so the loss is reported from there and
    no new connection is opened.
    """

    def __init__(self, *, on_stream_lost: Callable[[str, bool], Awaitable[None]], **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._on_stream_lost = on_stream_lost
        self._disconnect_reason: str | None = None

    async def run_message_listeners(self, message: dict, raw_message: str) -> None:
        if message.get("type") == "disconnect":
            self._disconnect_reason = message.get("reason") or "disconnect requested"
        await super().run_message_listeners(message, raw_message)

    async def connect_to_new_endpoint(self, force: bool = False) -> None:
        reason, self._disconnect_reason = self._disconnect_reason, None
        if reason is not None:
            await self._on_stream_lost(reason, True)
        else:
            await self._on_stream_lost("socket mode connection lost", False)


class SocketModeSource(EventSource):
    """Slack Socket Mode connection backed by slack_sdk's aiohttp client."""

    name: str = "socket_mode"

    def __init__(self, app_token: str, bot_token: str = "", *, client: Any = None) -> None:
        self._queue: asyncio.Queue[RawEnvelope | None] = asyncio.Queue()
        self._closed = False
        if client is None:
            client = StreamReportingClient(
                app_token=app_token,
                web_client=AsyncWebClient(token=bot_token or None),
                on_stream_lost=self._on_stream_lost,
            )
        self._client = client

    async def connect(self) -> None:
        self._client.socket_mode_request_listeners.append(self._on_request)
        await self._client.connect()
        logger.info("Connected to Slack Socket Mode")

    async def disconnect(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            await self._client.close()
        finally:
            self._queue.put_nowait(None)

    async def receive(self) -> RawEnvelope | None:
        if self._closed and self._queue.empty():
            return None
        return await self._queue.get()

    async def ack(self, envelope_id: str) -> None:
        await self._client.send_socket_mode_response(
            SocketModeResponse(envelope_id=envelope_id)
        )

    async def _on_request(self, client: Any, req: Any) -> None:
        self._queue.put_nowait(
            RawEnvelope(
                type=req.type,
                envelope_id=req.envelope_id or "",
                payload=req.payload or {},
            )
        )

    async def _on_stream_lost(self, reason: str, clean: bool) -> None:
        if self._closed:
            return
        self._queue.put_nowait(
            RawEnvelope(type="disconnect", payload={"reason": reason, "clean": clean})
        )


def classify(envelope: RawEnvelope) -> InboundEvent:
    """Map a raw envelope onto the closed event variant."""
    if envelope.type == "disconnect":
        return DisconnectEvent(
            envelope_id=envelope.envelope_id,
            reason=envelope.payload.get("reason") or "disconnect requested",
            clean=bool(envelope.payload.get("clean", True)),
        )

    if envelope.type == "interactive":
        payload = envelope.payload
        actions = payload.get("actions") or []
        actor_id = (payload.get("user") or {}).get("id", "")
        if payload.get("type") == "block_actions" and actions:
            channel_id = (payload.get("channel") or {}).get("id", "")
            ts = (payload.get("message") or {}).get("ts", "")
            target = MessageHandle(channel_id=channel_id, ts=ts) if channel_id and ts else None
            return InteractionEvent(
                envelope_id=envelope.envelope_id,
                actor_id=actor_id,
                action_id=actions[0].get("action_id", ""),
                target=target,
            )
        return OtherEvent(
            envelope_id=envelope.envelope_id,
            kind=f"interactive:{payload.get('type', '')}",
        )

    return OtherEvent(envelope_id=envelope.envelope_id, kind=envelope.type)


class EventIntake:
    """Classified, acknowledge-once view over an EventSource."""

    def __init__(self, source: EventSource) -> None:
        self.source = source
        self.connected = False
        self._acked: set[str] = set()

    async def connect(self) -> None:
        """Open the source; a half-opened source is closed again before re-raising."""
        try:
            await self.source.connect()
        except Exception:
            try:
                await self.source.disconnect()
            except Exception:
                logger.exception("Failed to close event source %s", self.source.name)
            raise
        self.connected = True

    async def disconnect(self) -> None:
        if not self.connected:
            return
        self.connected = False
        try:
            await self.source.disconnect()
        except Exception:
            logger.exception("Failed to disconnect event source %s", self.source.name)

    async def events(self) -> AsyncIterator[InboundEvent]:
        """Yield classified events; ends after the first disconnect."""
        while True:
            try:
                envelope = await self.source.receive()
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.exception("Event stream failed")
                yield DisconnectEvent(reason=f"event stream error: {exc}", clean=False)
                return

            if envelope is None:
                logger.warning("Event stream closed")
                yield DisconnectEvent(reason="event stream closed", clean=False)
                return

            event = classify(envelope)
            logger.debug("Received %s", type(event).__name__)
            yield event
            if isinstance(event, DisconnectEvent):
                return

    async def acknowledge(self, event: InboundEvent) -> None:
        """Ack the event's envelope once; repeats and envelope-less events are no-ops."""
        envelope_id = event.envelope_id
        if not envelope_id or envelope_id in self._acked:
            return
        self._acked.add(envelope_id)
        try:
            await self.source.ack(envelope_id)
        except Exception:
            logger.exception("Failed to acknowledge envelope %s", envelope_id)
