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
Stream Watchdog

Safety net for missed events. Every WATCHDOG_INTERVAL seconds, each session
that claims to be PLAYING is checked against the real voice client:

- voice client gone/disconnected → connection recovery
- connected but nothing playing  → stream recovery (as if the stream ended)

Sessions with a recovery already pending are left alone.
"""

import asyncio
import logging

logger = logging.getLogger(__name__)

from config.timing import WATCHDOG_INTERVAL
from core.session import SessionStatus
from systems.voice_manager import VoiceManager
from utils.discord_helpers import format_guild_log


def check_session(session, bot=None) -> bool:
    """
    Inspect one session and fire the matching event if it is silently dead.

    Returns:
        True if a recovery was triggered
    """
    if session.status is not SessionStatus.PLAYING or session.pending_recovery is not None:
        return False

    state = VoiceManager.get_voice_state_safe(session.voice_client)
    if state is None:
        logger.warning(f"{format_guild_log(session.guild_id, bot)}: Watchdog found voice disconnected")
        session.on_connection_disconnected()
        return True

    is_playing, is_paused = state
    if not is_playing and not is_paused:
        logger.warning(f"{format_guild_log(session.guild_id, bot)}: Watchdog found stream silent")
        session.on_player_idle()
        return True

    return False


async def stream_watchdog(bot, registry, interval: float = WATCHDOG_INTERVAL):
    """
    Background loop: check every session, forever.

    Args:
        bot: Discord bot instance
        registry: SessionRegistry
        interval: Seconds between sweeps
    """
    await bot.wait_until_ready()
    logger.debug("Stream watchdog started")

    while not bot.is_closed():
        try:
            await asyncio.sleep(interval)

            # Snapshot iteration: sessions may be removed mid-sweep
            for session in registry.sessions():
                check_session(session, bot)

        except asyncio.CancelledError:
            logger.debug("Stream watchdog cancelled, shutting down")
            break
        except Exception:
            logger.exception("Stream watchdog error")
