# Copyright (C) 2025 grodz
#
# This file is part of Airwave.
#
# Airwave is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE. See the
# GNU General Public License for more details.
#
# You should have received a copy of the GNU General Public License
# along with this program. If not, see <https://www.gnu.org/licenses/>.

"""
Reconnect Scheduler - Per-Guild Recovery Timer

One slot per guild. Two kinds of recovery share that slot:

- STREAM: the stream died (decoder exit, player error). Retried with
  exponential backoff: base → x2 → x2 ... capped at max. The owner resets the
  backoff once a restarted stream has proven healthy.
- CONNECTION: the voice connection dropped. Retried at a fixed interval.

Arming either kind cancels whatever was pending first, so a guild never has
two recoveries in flight. cancel() is synchronous: once it returns, nothing
armed earlier can fire.
"""

import asyncio
import logging
from enum import Enum
from time import monotonic as _now
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)  # For debug/error logs
user_logger = logging.getLogger('airwave')  # For operator-facing messages

from config.timing import (
    RECONNECT_BASE_DELAY,
    RECONNECT_IDLE_DELAY,
    RECONNECT_MAX_DELAY,
    VOICE_RECOVERY_DELAY,
)
from utils.discord_helpers import format_guild_log


class RecoveryKind(Enum):
    """What a pending timer will try to recover."""
    STREAM = 'stream'
    CONNECTION = 'connection'


class ReconnectScheduler:
    """
    Single-slot recovery timer with exponential backoff for one guild.

    The scheduler knows nothing about voice or ffmpeg. The owner supplies:
    - is_active(kind): stale-timer guard, checked when the timer fires
    - retry_stream(): rebuild the source and restart playback, True on success
    - recover_connection(): rejoin voice and resume playback, True on success

    Attempts may also re-arm the slot themselves (e.g. a stream retry that finds
    the voice connection dead hands over to connection recovery). When that
    happens the original attempt's outcome is ignored.
    """

    def __init__(
        self,
        guild_id: int,
        *,
        is_active: Callable[[RecoveryKind], bool],
        retry_stream: Callable[[], Awaitable[bool]],
        recover_connection: Callable[[], Awaitable[bool]],
        base_delay: float = RECONNECT_BASE_DELAY,
        idle_delay: float = RECONNECT_IDLE_DELAY,
        max_delay: float = RECONNECT_MAX_DELAY,
        connection_delay: float = VOICE_RECOVERY_DELAY,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        bot=None,
    ):
        self.guild_id = guild_id
        self.bot = bot

        self._is_active = is_active
        self._retry_stream = retry_stream
        self._recover_connection = recover_connection
        self._sleep = sleep

        self.base_delay = base_delay
        self.idle_delay = idle_delay
        self.max_delay = max_delay
        self.connection_delay = connection_delay

        # Backoff state (inspectable)
        self.delay: float = base_delay
        self.failures: int = 0

        # Slot state
        self.kind: Optional[RecoveryKind] = None
        self.armed_delay: Optional[float] = None
        self._armed_at: float = 0.0
        self._task: Optional[asyncio.Task] = None

    # =========================================================================
    # Inspection
    # =========================================================================

    @property
    def pending(self) -> bool:
        """True while a timer is armed or its attempt is in flight."""
        return self._task is not None and not self._task.done()

    @property
    def remaining(self) -> Optional[float]:
        """Seconds until the pending timer fires (0 once it is attempting)."""
        if not self.pending or self.armed_delay is None:
            return None
        return max(0.0, self.armed_delay - (_now() - self._armed_at))

    # =========================================================================
    # Arming
    # =========================================================================

    def schedule_retry(self, fast: bool = False) -> float:
        """
        Arm a stream retry at the current backoff delay.

        Args:
            fast: Stream ended rather than errored. Starts a fresh backoff
                  chain at the shorter idle delay, unless already backing off.

        Returns:
            The delay the timer was armed with
        """
        if fast and self.failures == 0:
            self.delay = min(self.idle_delay, self.base_delay)
        self._arm(RecoveryKind.STREAM, self.delay)
        return self.delay

    def schedule_connection_recovery(self) -> float:
        """Arm a voice rejoin at the fixed connection delay."""
        self._arm(RecoveryKind.CONNECTION, self.connection_delay)
        return self.connection_delay

    def cancel(self) -> bool:
        """
        Cancel the pending timer (or in-flight attempt) synchronously.

        Returns:
            True if something was cancelled
        """
        task = self._task
        self._task = None
        self.kind = None
        self.armed_delay = None

        if task is None or task.done():
            return False
        if task is asyncio.current_task():
            # An attempt re-arming the slot from inside itself; let it finish
            return False

        task.cancel()
        logger.debug(f"{format_guild_log(self.guild_id, self.bot)}: Pending recovery cancelled")
        return True

    def record_failure(self) -> float:
        """Count a failed stream attempt and double the delay (capped)."""
        self.failures += 1
        self.delay = min(self.delay * 2, self.max_delay)
        return self.delay

    def reset(self) -> None:
        """Back to the base delay (stream proved healthy or manual start)."""
        self.delay = self.base_delay
        self.failures = 0

    def _arm(self, kind: RecoveryKind, delay: float) -> None:
        self.cancel()

        self.kind = kind
        self.armed_delay = delay
        self._armed_at = _now()
        self._task = asyncio.get_running_loop().create_task(
            self._run(kind, delay),
            name=f"recovery-{kind.value}-{self.guild_id}",
        )
        logger.debug(
            f"{format_guild_log(self.guild_id, self.bot)}: {kind.value} recovery armed in {delay:.1f}s"
        )

    # =========================================================================
    # Firing
    # =========================================================================

    async def _run(self, kind: RecoveryKind, delay: float) -> None:
        """Wait, re-check, attempt, then release or back off."""
        me = asyncio.current_task()

        await self._sleep(delay)

        # Stale-timer guard: session stopped/disconnected while we slept
        if not self._is_active(kind):
            logger.debug(f"{format_guild_log(self.guild_id, self.bot)}: Stale {kind.value} timer ignored")
            self._release(me)
            return

        attempt = self._retry_stream if kind is RecoveryKind.STREAM else self._recover_connection
        try:
            ok = await attempt()
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception(f"{format_guild_log(self.guild_id, self.bot)}: {kind.value} recovery attempt crashed")
            ok = False

        # Slot re-armed or cancelled while attempting; that decision wins
        if self._task is not me:
            return

        if ok:
            # Backoff survives until the owner sees the stream stay up
            self._release(me)
            return

        if not self._is_active(kind):
            self._release(me)
            return

        if kind is RecoveryKind.STREAM:
            self.record_failure()
            user_logger.warning(
                f"{format_guild_log(self.guild_id, self.bot)}: Stream retry failed, "
                f"next attempt in {self.delay:.0f}s"
            )
            self._arm(kind, self.delay)
        else:
            user_logger.warning(
                f"{format_guild_log(self.guild_id, self.bot)}: Voice rejoin failed, "
                f"retrying in {self.connection_delay:.0f}s"
            )
            self._arm(kind, self.connection_delay)

    def _release(self, task: Optional[asyncio.Task]) -> None:
        """Clear the slot if it still belongs to `task`."""
        if self._task is task:
            self._task = None
            self.kind = None
            self.armed_delay = None
