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
Session Registry

The only place AudioSessions are created or destroyed. At most one session per
guild; a guild's entry exists only while its session is alive and connected
(or recovering).

Creation and removal for the same guild are serialised with a per-guild lock,
so two /play commands racing each other can't build two sessions. A lock only
lives while some caller holds or waits on it.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from time import monotonic as _now
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)  # For debug/error logs
user_logger = logging.getLogger('airwave')  # For operator-facing messages

from config.timing import STREAM_HEALTHY_AFTER, VOICE_RECONNECT_DELAY
from core.decoder import make_radio_source
from core.errors import RadioError
from core.session import AudioSession, Connector, SourceFactory
from utils.discord_helpers import format_guild_log


class SessionRegistry:
    """
    guild_id → AudioSession.

    Arguments other than bot are forwarded to every session it creates (tests
    use them to inject fake sources and a fake clock).
    """

    def __init__(
        self,
        bot=None,
        *,
        radio_url: Optional[str] = None,
        source_factory: SourceFactory = make_radio_source,
        scheduler_options: Optional[Dict[str, Any]] = None,
        reconnect_settle_delay: float = VOICE_RECONNECT_DELAY,
        stream_healthy_after: float = STREAM_HEALTHY_AFTER,
        clock: Callable[[], float] = _now,
    ):
        self.bot = bot
        self.radio_url = radio_url
        self.source_factory = source_factory
        self.scheduler_options = scheduler_options
        self.reconnect_settle_delay = reconnect_settle_delay
        self.stream_healthy_after = stream_healthy_after
        self.clock = clock

        self._sessions: Dict[int, AudioSession] = {}
        # guild_id -> [lock, number of callers holding or waiting on it]
        self._locks: Dict[int, list] = {}

    # =========================================================================
    # Lookup
    # =========================================================================

    def get(self, guild_id: int) -> Optional[AudioSession]:
        return self._sessions.get(guild_id)

    def sessions(self) -> List[AudioSession]:
        """Snapshot of live sessions (safe to iterate while sessions change)."""
        return list(self._sessions.values())

    def __contains__(self, guild_id: int) -> bool:
        return guild_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    @asynccontextmanager
    async def _guild_lock(self, guild_id: int):
        """Hold the guild's lock; drop it from the table once nobody needs it."""
        entry = self._locks.get(guild_id)
        if entry is None:
            entry = self._locks[guild_id] = [asyncio.Lock(), 0]
        entry[1] += 1
        try:
            async with entry[0]:
                yield
        finally:
            entry[1] -= 1
            if entry[1] == 0 and self._locks.get(guild_id) is entry:
                del self._locks[guild_id]

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def create_or_replace(self, guild_id: int, voice_channel_id: int, connector: Connector) -> AudioSession:
        """
        Start the radio for a guild.

        - Same channel as the running session: reuse its connection, restart
          the stream.
        - Different channel: tear the old session down, build a new one.
        - No session: connect, start, then register.

        A new session is only registered once it is playing; if it fails to
        start, its connection is torn down and the registry is unchanged.

        Raises:
            VoiceConnectionError, DecodeUnavailable, PlaybackError: start failed
        """
        async with self._guild_lock(guild_id):
            existing = self._sessions.get(guild_id)
            if existing is not None:
                if existing.voice_channel_id == voice_channel_id:
                    existing.connector = connector
                    await existing.restart()
                    return existing

                logger.info(
                    f"{format_guild_log(guild_id, self.bot)}: Moving radio from channel "
                    f"{existing.voice_channel_id} to {voice_channel_id}"
                )
                self._sessions.pop(guild_id, None)
                await existing.disconnect()

            session = AudioSession(
                guild_id,
                voice_channel_id,
                connector,
                radio_url=self.radio_url,
                source_factory=self.source_factory,
                registry=self,
                bot=self.bot,
                scheduler_options=self.scheduler_options,
                reconnect_settle_delay=self.reconnect_settle_delay,
                stream_healthy_after=self.stream_healthy_after,
                clock=self.clock,
            )

            try:
                await session.start()
            except RadioError:
                # Not registered yet: just release whatever it acquired
                await session.disconnect()
                raise

            self._sessions[guild_id] = session
            logger.debug(f"{format_guild_log(guild_id, self.bot)}: Session registered ({len(self._sessions)} active)")
            return session

    async def remove(self, guild_id: int) -> bool:
        """
        Disconnect and forget a guild's session.

        The entry is gone before teardown awaits anything, so a lookup during
        teardown already sees no session.

        Returns:
            True if a session was removed
        """
        async with self._guild_lock(guild_id):
            session = self._sessions.pop(guild_id, None)
            if session is None:
                return False
            await session.disconnect()
            return True

    def discard(self, session: AudioSession) -> None:
        """Drop the entry if it still maps to this session (called by the session itself)."""
        if self._sessions.get(session.guild_id) is session:
            del self._sessions[session.guild_id]

    async def shutdown(self) -> None:
        """Disconnect every session (bot shutdown)."""
        sessions = self.sessions()
        if not sessions:
            return

        user_logger.info(f"Disconnecting {len(sessions)} radio session(s)...")
        for session in sessions:
            try:
                await self.remove(session.guild_id)
            except Exception:
                logger.exception(f"{format_guild_log(session.guild_id, self.bot)}: Error during shutdown teardown")
