"""
Process lifecycle — one notification run, start to exit status.

Sequential phase: delay, post, connect. Concurrent phase: the arbiter.
The exit status is derived from whatever the arbiter committed.
"""

from __future__ import annotations

import asyncio
import logging
import random

from fusebot.arbiter import OutcomeArbiter
from fusebot.config import FuseConfig
from fusebot.delay import compute_delay, suspend
from fusebot.intake import EventIntake, EventSource, SocketModeSource
from fusebot.models import Outcome, Resolution
from fusebot.publisher import SlackAPIError, SlackPublisher

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1


def exit_code_for(resolution: Resolution) -> int:
    """Map a committed resolution to a process exit status."""
    if resolution.outcome in (Outcome.DELETED_BY_USER, Outcome.TIMED_OUT):
        return EXIT_OK
    if resolution.outcome is Outcome.STREAM_DISCONNECTED:
        return EXIT_OK if resolution.clean else EXIT_FAILURE
    raise ValueError(f"{resolution.outcome.value} is not a terminal outcome")


async def run_notice(
    config: FuseConfig,
    *,
    publisher: SlackPublisher | None = None,
    source: EventSource | None = None,
    rng: random.Random | None = None,
) -> int:
    """Post the message, race timeout against the delete button, return exit code."""
    publisher = publisher or SlackPublisher(config.bot_token)
    intake = EventIntake(source or SocketModeSource(config.app_token, config.bot_token))

    async with publisher:
        await suspend(compute_delay(config.max_delay_seconds, rng))

        try:
            handle = await publisher.post(
                config.channel_id, config.message, config.button_label
            )
        except SlackAPIError as exc:
            logger.error("Failed to post message: %s", exc)
            return EXIT_FAILURE
        posted_at = asyncio.get_running_loop().time()
        logger.info("Message posted successfully at %s", handle.ts)

        try:
            await intake.connect()
        except Exception:
            logger.exception("Socket mode error: could not connect")
            return EXIT_FAILURE

        arbiter = OutcomeArbiter(
            handle,
            publisher,
            intake,
            config.allow_list,
            timeout_seconds=config.timeout_seconds,
            timeout_message=config.timeout_message,
            unauthorized_message=config.unauthorized_message,
            posted_at=posted_at,
        )
        try:
            resolution = await arbiter.run()
        finally:
            await intake.disconnect()

    code = exit_code_for(resolution)
    logger.info("Finished: %s (exit %d)", resolution.outcome.value, code)
    return code
