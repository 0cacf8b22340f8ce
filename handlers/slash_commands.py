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
Slash Commands

The radio's user surface. Every command:
- defers ephemerally (only the caller sees the reply)
- translates the session's exceptions into a friendly message
- never touches voice clients directly; the session owns them

/play /stop /disconnect /pause /resume /restart /status /volume /info
"""

import logging
import math
from typing import Optional
import disnake
from disnake.ext import commands

logger = logging.getLogger(__name__)
user_logger = logging.getLogger('airwave')

from config import (
    MESSAGES, COMMAND_DESCRIPTIONS, RADIO_NAME, VOLUME_MIN, VOLUME_MAX,
)
from config.embeds import create_status_embed, create_info_embed
from core.errors import (
    DecodeUnavailable, PlaybackError, RadioError, StateError, ValidationError, VoiceConnectionError,
)
from systems.voice_manager import VoiceManager
from utils.response_helper import send_response
from utils.discord_helpers import (
    can_connect_to_channel, format_guild_log, format_user_log, sanitize_for_format,
)


def error_message(error: RadioError) -> str:
    """Map a session exception to the message shown to the user."""
    if isinstance(error, VoiceConnectionError):
        return MESSAGES['error_cant_connect'].format(error=sanitize_for_format(str(error)))
    if isinstance(error, (DecodeUnavailable, PlaybackError)):
        return MESSAGES['error_decoder'].format(error=sanitize_for_format(str(error)))
    if isinstance(error, ValidationError):
        return MESSAGES['error_invalid_volume'].format(min=VOLUME_MIN, max=VOLUME_MAX)
    if isinstance(error, StateError):
        return MESSAGES['error_invalid_state'].format(error=sanitize_for_format(str(error)))
    return MESSAGES['error_occurred']


def setup(bot, registry, decoder_version: Optional[str] = None):
    """Register slash commands with the bot."""

    logger.info("Registering slash commands...")

    async def get_session_or_reply(inter):
        """Session for this guild, or reply 'not running' and return None."""
        session = registry.get(inter.guild.id)
        if session is None:
            await send_response(inter, MESSAGES['error_no_session'])
        return session

    # =========================================================================
    # SLASH COMMANDS
    # =========================================================================

    @bot.slash_command(name='play', description=COMMAND_DESCRIPTIONS['play'], dm_permission=False)
    async def play_slash(inter: disnake.ApplicationCommandInteraction):
        """Start (or restart) the radio in the caller's voice channel."""
        await inter.response.defer(ephemeral=True)

        if not inter.author.voice or not inter.author.voice.channel:
            await send_response(inter, MESSAGES['error_not_in_voice'])
            return

        channel = inter.author.voice.channel
        if not can_connect_to_channel(channel):
            await send_response(inter, MESSAGES['error_no_permission'].format(channel=sanitize_for_format(channel.name)))
            return

        was_running = inter.guild.id in registry
        connector = VoiceManager(bot, inter.guild.id).connect
        try:
            await registry.create_or_replace(inter.guild.id, channel.id, connector)
        except RadioError as e:
            logger.warning(f"{format_guild_log(inter.guild, bot)}: /play failed: {e}")
            await send_response(inter, error_message(e))
            return

        user_logger.info(f"{format_guild_log(inter.guild, bot)}: {format_user_log(inter.author, bot)} started the radio in {channel.name}")
        key = 'restarted' if was_running else 'started'
        await send_response(inter, MESSAGES[key].format(
            radio=sanitize_for_format(RADIO_NAME),
            channel=sanitize_for_format(channel.name),
        ))


    @bot.slash_command(name='stop', description=COMMAND_DESCRIPTIONS['stop'], dm_permission=False)
    async def stop_slash(inter: disnake.ApplicationCommandInteraction):
        """Stop the stream but stay in the channel."""
        await inter.response.defer(ephemeral=True)

        session = await get_session_or_reply(inter)
        if session is None:
            return

        try:
            session.stop()
        except RadioError as e:
            await send_response(inter, error_message(e))
            return

        await send_response(inter, MESSAGES['stopped'])


    @bot.slash_command(name='disconnect', description=COMMAND_DESCRIPTIONS['disconnect'], dm_permission=False)
    async def disconnect_slash(inter: disnake.ApplicationCommandInteraction):
        """Stop the radio and leave voice."""
        await inter.response.defer(ephemeral=True)

        if not await registry.remove(inter.guild.id):
            await send_response(inter, MESSAGES['error_no_session'])
            return

        user_logger.info(f"{format_guild_log(inter.guild, bot)}: {format_user_log(inter.author, bot)} disconnected the radio")
        await send_response(inter, MESSAGES['disconnected'])


    @bot.slash_command(name='pause', description=COMMAND_DESCRIPTIONS['pause'], dm_permission=False)
    async def pause_slash(inter: disnake.ApplicationCommandInteraction):
        await inter.response.defer(ephemeral=True)

        session = await get_session_or_reply(inter)
        if session is None:
            return

        try:
            session.pause()
        except RadioError as e:
            await send_response(inter, error_message(e))
            return

        await send_response(inter, MESSAGES['paused'])


    @bot.slash_command(name='resume', description=COMMAND_DESCRIPTIONS['resume'], dm_permission=False)
    async def resume_slash(inter: disnake.ApplicationCommandInteraction):
        await inter.response.defer(ephemeral=True)

        session = await get_session_or_reply(inter)
        if session is None:
            return

        try:
            session.resume()
        except RadioError as e:
            await send_response(inter, error_message(e))
            return

        await send_response(inter, MESSAGES['resumed'])


    @bot.slash_command(name='restart', description=COMMAND_DESCRIPTIONS['restart'], dm_permission=False)
    async def restart_slash(inter: disnake.ApplicationCommandInteraction):
        """Kill the current stream and open a fresh one (same connection)."""
        await inter.response.defer(ephemeral=True)

        session = await get_session_or_reply(inter)
        if session is None:
            return

        try:
            await session.restart()
        except RadioError as e:
            logger.warning(f"{format_guild_log(inter.guild, bot)}: /restart failed: {e}")
            await send_response(inter, error_message(e))
            return

        channel = inter.guild.get_channel(session.voice_channel_id)
        await send_response(inter, MESSAGES['restarted'].format(
            radio=sanitize_for_format(RADIO_NAME),
            channel=sanitize_for_format(channel.name if channel else str(session.voice_channel_id)),
        ))


    @bot.slash_command(name='status', description=COMMAND_DESCRIPTIONS['status'], dm_permission=False)
    async def status_slash(inter: disnake.ApplicationCommandInteraction):
        await inter.response.defer(ephemeral=True)

        session = registry.get(inter.guild.id)
        snapshot = session.snapshot() if session is not None else None
        await send_response(inter, embed=create_status_embed(snapshot, RADIO_NAME))


    @bot.slash_command(name='volume', description=COMMAND_DESCRIPTIONS['volume'], dm_permission=False)
    async def volume_slash(
        inter: disnake.ApplicationCommandInteraction,
        level: int = commands.Param(description=f"Volume ({VOLUME_MIN}-{VOLUME_MAX})", ge=VOLUME_MIN, le=VOLUME_MAX),
    ):
        await inter.response.defer(ephemeral=True)

        session = await get_session_or_reply(inter)
        if session is None:
            return

        try:
            applied = session.set_volume(level)
        except RadioError as e:
            await send_response(inter, error_message(e))
            return

        key = 'volume_set' if applied else 'volume_saved'
        await send_response(inter, MESSAGES[key].format(level=level))


    @bot.slash_command(name='info', description=COMMAND_DESCRIPTIONS['info'])
    async def info_slash(inter: disnake.ApplicationCommandInteraction):
        await inter.response.defer(ephemeral=True)

        latency = bot.latency
        latency_ms = latency * 1000 if latency is not None and math.isfinite(latency) else None
        embed = create_info_embed(
            RADIO_NAME,
            active_sessions=len(registry),
            guild_count=len(bot.guilds),
            latency_ms=latency_ms,
            decoder_version=decoder_version,
        )
        await send_response(inter, embed=embed)


    @bot.event
    async def on_slash_command_error(inter: disnake.ApplicationCommandInteraction, error):
        """Last-resort handler: log with traceback, tell the user something broke."""
        logger.error(f"Slash command error in /{inter.application_command.name}: {error}", exc_info=error)
        await send_response(inter, MESSAGES['error_occurred'])

    logger.info("Slash commands registered successfully")
