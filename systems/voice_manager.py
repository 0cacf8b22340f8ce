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
Voice Management System

The production connector: joins a guild's voice channel and hands the
connected client to the session. Also the safe voice-state check used by
the watchdog.
"""

import asyncio
import logging
from typing import Optional, Tuple
import disnake

logger = logging.getLogger(__name__)  # For debug/error logs

from config.timing import VOICE_CONNECT_TIMEOUT, VOICE_RECONNECT_DELAY
from core.errors import VoiceConnectionError
from utils.discord_helpers import (
    can_connect_to_channel,
    format_guild_log,
    safe_disconnect,
    safe_voice_state_change,
)


class VoiceManager:
    """
    Voice connector for one guild.

    Sessions call connect(channel_id) to open (or reopen) their connection;
    the session owns the returned client from then on.
    """

    def __init__(self, bot, guild_id: int, timeout: float = VOICE_CONNECT_TIMEOUT):
        self.bot = bot
        self.guild_id = guild_id
        self.timeout = timeout

    def __repr__(self) -> str:
        return f"<VoiceManager guild={self.guild_id}>"

    # =========================================================================
    # Voice State Utilities
    # =========================================================================

    @staticmethod
    def get_voice_state_safe(voice_client) -> Optional[Tuple[bool, bool]]:
        """
        Safely get voice state.

        Returns:
            Tuple of (is_playing, is_paused) or None if not connected or error
        """
        if not voice_client:
            return None
        try:
            if not voice_client.is_connected():
                return None
            return (voice_client.is_playing(), voice_client.is_paused())
        except (disnake.ClientException, RuntimeError, AttributeError) as e:
            logger.debug(f"Voice state check failed: {e}")
            return None

    # =========================================================================
    # Connector
    # =========================================================================

    async def connect(self, channel_id: int) -> disnake.VoiceClient:
        """
        Join the voice channel and return the connected client.

        Reuses the guild's client if it is already connected to this channel.
        A leftover client (dead or in another channel) is torn down first.

        Raises:
            VoiceConnectionError: channel gone, no permission, or handshake failed
        """
        guild = self.bot.get_guild(self.guild_id)
        if guild is None:
            raise VoiceConnectionError(f"Guild {self.guild_id} is not available")

        channel = guild.get_channel(channel_id)
        if not isinstance(channel, (disnake.VoiceChannel, disnake.StageChannel)):
            raise VoiceConnectionError(f"Voice channel {channel_id} no longer exists")

        if not can_connect_to_channel(channel):
            raise VoiceConnectionError(f"Missing connect/speak permission in {channel.name}")

        existing = guild.voice_client
        if existing is not None:
            if existing.is_connected() and getattr(existing.channel, 'id', None) == channel_id:
                return existing
            await safe_disconnect(existing, force=True)
            await asyncio.sleep(VOICE_RECONNECT_DELAY)

        try:
            vc = await channel.connect(timeout=self.timeout, reconnect=True)
        except asyncio.TimeoutError as e:
            raise VoiceConnectionError(f"Timed out joining {channel.name}") from e
        except (disnake.ClientException, disnake.HTTPException, OSError) as e:
            raise VoiceConnectionError(f"Could not join {channel.name}: {e}") from e

        # Bot doesn't need to hear anyone
        await safe_voice_state_change(guild, channel, self_deaf=True)

        logger.debug(f"{format_guild_log(guild, self.bot)}: Connected to voice channel {channel.name}")
        return vc
