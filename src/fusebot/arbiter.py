"""
OutcomeArbiter — decides the fate of the posted message.

Once the message is live, two tasks race: a timeout timer and a loop over
the classified event stream. Both go through `commit()`, which accepts
exactly one terminal outcome. Only the caller that won the commit applies a
mutation to the message, so the button is either stripped, or the message
deleted, or (on disconnect) left alone — never more than one of these.

Unauthorized delete attempts are answered with an ephemeral notice and do
not end the race.
"""

from __future__ import annotations

import asyncio
import logging

from fusebot.auth import AllowList, is_authorized
from fusebot.intake import EventIntake
from fusebot.models import (
    DisconnectEvent,
    InboundEvent,
    InteractionEvent,
    MessageHandle,
    Outcome,
    Resolution,
)
from fusebot.publisher import DELETE_ACTION_ID, SlackPublisher

logger = logging.getLogger(__name__)


class OutcomeArbiter:
    """Owns the single terminal decision for one posted message."""

    def __init__(
        self,
        handle: MessageHandle,
        publisher: SlackPublisher,
        intake: EventIntake,
        allow_list: AllowList,
        *,
        timeout_seconds: float,
        timeout_message: str,
        unauthorized_message: str,
        delete_action_id: str = DELETE_ACTION_ID,
        posted_at: float | None = None,
    ) -> None:
        self.handle = handle
        self.publisher = publisher
        self.intake = intake
        self.allow_list = allow_list
        self.timeout_seconds = timeout_seconds
        self.timeout_message = timeout_message
        self.unauthorized_message = unauthorized_message
        self.delete_action_id = delete_action_id
        self.posted_at = posted_at
        self.rejected: list[str] = []  # actor ids turned away, in order
        self._resolution: Resolution | None = None
        self._finished = asyncio.Event()

    # ------------------------------------------------------------------
    # Arbitration point
    # ------------------------------------------------------------------

    @property
    def resolution(self) -> Resolution | None:
        return self._resolution

    @property
    def resolved(self) -> bool:
        return self._resolution is not None

    def commit(self, outcome: Outcome, detail: str = "", clean: bool = True) -> bool:
        """
        Record `outcome` as the terminal decision.

        Returns True only for the call that won; every later call is a
        no-op returning False. There is no await between the check and the
        set, so concurrent tasks cannot both win.
        """
        if not outcome.terminal:
            raise ValueError(f"{outcome.value} is not a terminal outcome")
        if self._resolution is not None:
            logger.debug(
                "Ignoring %s, already resolved as %s",
                outcome.value,
                self._resolution.outcome.value,
            )
            return False
        self._resolution = Resolution(outcome=outcome, detail=detail, clean=clean)
        logger.debug("Resolved: %s (%s)", outcome.value, detail)
        return True

    # ------------------------------------------------------------------
    # Race
    # ------------------------------------------------------------------

    async def run(self) -> Resolution:
        """Race the timer against the event stream until one side resolves."""
        loop = asyncio.get_running_loop()
        if self.posted_at is None:
            self.posted_at = loop.time()

        timer = asyncio.create_task(self._run_timer(), name="fusebot-timer")
        listener = asyncio.create_task(self._consume(), name="fusebot-events")
        try:
            await self._finished.wait()
        finally:
            for task in (timer, listener):
                if not task.done():
                    task.cancel()
            await asyncio.gather(timer, listener, return_exceptions=True)

        if self._resolution is None:
            raise RuntimeError("arbiter finished without a resolution")
        return self._resolution

    def _remaining(self) -> float:
        elapsed = asyncio.get_running_loop().time() - (self.posted_at or 0.0)
        return max(0.0, self.timeout_seconds - elapsed)

    async def _run_timer(self) -> None:
        await asyncio.sleep(self._remaining())
        if not self.commit(Outcome.TIMED_OUT, "timeout reached"):
            return
        logger.info("Timeout reached, removing button")
        try:
            await self.publisher.strip_controls(self.handle, self.timeout_message)
        except Exception:
            logger.exception("Failed to update message on timeout")
        finally:
            self._finished.set()

    async def _consume(self) -> None:
        try:
            async for event in self.intake.events():
                if self.resolved:
                    await self.intake.acknowledge(event)
                    return
                try:
                    won = await self._handle(event)
                finally:
                    await self.intake.acknowledge(event)
                if won:
                    self._finished.set()
                if self.resolved:
                    return
        except Exception:
            logger.exception("Event loop failed")
            if self.commit(Outcome.STREAM_DISCONNECTED, "event loop failed", clean=False):
                self._finished.set()

    async def _handle(self, event: InboundEvent) -> bool:
        """Apply one event. Returns True if it committed the terminal outcome."""
        if isinstance(event, DisconnectEvent):
            if not self.commit(Outcome.STREAM_DISCONNECTED, event.reason, clean=event.clean):
                return False
            if event.clean:
                logger.info("Disconnected from Slack: %s", event.reason)
            else:
                logger.error("Lost event stream: %s", event.reason)
            return True

        if not isinstance(event, InteractionEvent) or not self._targets_us(event):
            return False

        if not is_authorized(event.actor_id, self.allow_list):
            await self._reject(event)
            return False

        if not self.commit(Outcome.DELETED_BY_USER, f"deleted by {event.actor_id}"):
            return False
        try:
            await self.publisher.delete(self.handle)
        except Exception:
            logger.exception("Failed to delete message")
        else:
            logger.info("Message deleted successfully")
        return True

    def _targets_us(self, event: InteractionEvent) -> bool:
        if event.action_id != self.delete_action_id:
            return False
        if event.target != self.handle:
            logger.debug("Ignoring %s on another message", event.action_id)
            return False
        return True

    async def _reject(self, event: InteractionEvent) -> None:
        logger.warning("User %s is not allowed to delete", event.actor_id)
        self.rejected.append(event.actor_id)
        try:
            await self.publisher.notify_ephemeral(
                self.handle.channel_id, event.actor_id, self.unauthorized_message
            )
        except Exception:
            logger.exception("Failed to notify %s", event.actor_id)
