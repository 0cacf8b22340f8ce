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
Airwave Radio Bot
========================================================
VERSION: 1.0.0
========================================================

A Discord bot that relays one internet radio stream 24/7 into voice channels,
built using the disnake API.
"""

import disnake
from disnake.ext import commands
import asyncio
import logging
import signal
import sys
import os

# Config loads .env itself (Python > .env > default)
from config import (
    DISCORD_BOT_TOKEN, RADIO_NAME, RADIO_URL, LOG_LEVEL, SUPPRESS_LIBRARY_LOGS, SHOW_PRESENCE,
    FFMPEG_EXECUTABLE, validate_settings,
)

# =============================================================================
# LOGGING SETUP
# =============================================================================

LOG_LEVEL_MAP = {
    'DEBUG': logging.DEBUG,
    'INFO': logging.INFO,
    'WARNING': logging.WARNING,
    'ERROR': logging.ERROR,
    'CRITICAL': logging.CRITICAL,
}


class AirwaveFormatter(logging.Formatter):
    """
    Formatter with 4-character level names for aligned logs.

    - DEBUG    → [DBUG] - Technical details for debugging
    - INFO     → [INFO] - Normal operation messages
    - WARNING  → [WARN] - Issues that don't stop operation (stream retries)
    - ERROR    → [FAIL] - Recoverable failures
    - CRITICAL → [CRIT] - Bot cannot start
    """

    LEVEL_NAMES = {
        'DEBUG': 'DBUG',
        'INFO': 'INFO',
        'WARNING': 'WARN',
        'ERROR': 'FAIL',
        'CRITICAL': 'CRIT',
    }

    def format(self, record):
        # Swap the levelname only for this handler, then restore it
        original_levelname = record.levelname
        record.levelname = self.LEVEL_NAMES.get(record.levelname, record.levelname)
        try:
            return super().format(record)
        finally:
            record.levelname = original_levelname


handler = logging.StreamHandler()
handler.setFormatter(AirwaveFormatter(
    fmt='[%(asctime)s] [%(levelname)s] %(name)s: %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
))
logging.basicConfig(
    level=LOG_LEVEL_MAP.get(LOG_LEVEL, logging.INFO),
    handlers=[handler]
)
logger = logging.getLogger('airwave')

# Reduce disnake noise (if enabled)
_library_level = logging.WARNING if SUPPRESS_LIBRARY_LOGS else LOG_LEVEL_MAP.get(LOG_LEVEL, logging.INFO)
for _name in ('disnake', 'disnake.player', 'disnake.voice_client', 'disnake.gateway'):
    logging.getLogger(_name).setLevel(_library_level)

# =============================================================================
# ASYNCIO EXCEPTION HANDLER
# =============================================================================

def custom_exception_handler(loop, context):
    """
    Suppress cosmetic aiohttp shutdown warnings ("Unclosed client session",
    "Unclosed connector"). Everything else goes to the default handler.
    """
    message = context.get("message", "")
    if message in ["Unclosed client session", "Unclosed connector"]:
        return
    loop.default_exception_handler(context)

# =============================================================================
# BOT SETUP
# =============================================================================

intents = disnake.Intents.default()
intents.voice_states = True

bot = commands.Bot(
    command_prefix=commands.when_mentioned,
    intents=intents,
    help_command=None,
    command_sync_flags=commands.CommandSyncFlags.default(),
)

from core.decoder import check_ffmpeg
from core.registry import SessionRegistry
from systems.watchdog import stream_watchdog
from utils.discord_helpers import update_presence, format_guild_log

registry = SessionRegistry(bot, radio_url=RADIO_URL)

# Global watchdog task
_watchdog_task = None

# Shutdown flag so on_disconnect doesn't tear down during a gateway blip
_is_shutting_down = False

# Initialization flag so on_ready reconnects skip startup work
_is_initialized = False

# =============================================================================
# BOT EVENTS
# =============================================================================

@bot.event
async def on_ready():
    """
    Bot connected to Discord.

    Runs startup once; later on_ready calls are full gateway reconnects and
    only restore voice.
    """
    global _watchdog_task, _is_initialized

    if _is_initialized:
        logger.info("Gateway reconnected via on_ready")
        _restore_voice_connections()
        return

    _is_initialized = True

    # bot.run() creates its own loop, so the handler is installed here
    bot.loop.set_exception_handler(custom_exception_handler)

    # Copyright and license info (as required by GPL 3.0)
    logger.info('Airwave v1.0.0 - Copyright (C) 2025 grodz')
    logger.info('Licensed under GPL 3.0 - See LICENSE.md for details')

    logger.info(f'Bot connected as {bot.user}')
    logger.info(f'Relaying {RADIO_NAME} ({RADIO_URL})')
    logger.info("Press Ctrl+C or send SIGTERM to shutdown")

    if SHOW_PRESENCE:
        await update_presence(bot, RADIO_NAME)

    _watchdog_task = bot.loop.create_task(stream_watchdog(bot, registry))


@bot.event
async def on_disconnect():
    """
    Gateway disconnected.

    Temporary drops are left to disnake's auto-reconnect; voice is restored
    in on_resumed/on_ready. Real teardown happens in shutdown_bot().
    """
    if not _is_shutting_down:
        logger.info("Gateway disconnected, waiting for disnake auto-reconnect...")

# =============================================================================
# VOICE RESTORATION
# =============================================================================

def _restore_voice_connections():
    """
    After a gateway reconnect, hand every session with a dead voice client to
    its connection recovery (same channel, fixed delay).
    """
    sessions = registry.sessions()
    if not sessions:
        return

    logger.info("Gateway reconnected, checking voice connections...")
    for session in sessions:
        if not session.is_connected:
            logger.info(f"{format_guild_log(session.guild_id, bot)}: Voice broken after gateway reconnect")
            session.on_connection_disconnected()


@bot.event
async def on_resumed():
    """Gateway session resumed; voice may still need restoring."""
    _restore_voice_connections()
    if SHOW_PRESENCE:
        await update_presence(bot, RADIO_NAME)


@bot.event
async def on_voice_state_update(member, before, after):
    """The bot itself dropped out of voice: route to connection recovery."""
    if bot.user is None or member.id != bot.user.id:
        return
    if not before.channel or after.channel:
        return

    session = registry.get(member.guild.id)
    if session is None:
        return

    logger.info(f"{format_guild_log(member.guild, bot)}: Bot left voice channel {before.channel.name}")
    session.on_connection_disconnected()


@bot.event
async def on_guild_remove(guild):
    """Bot removed from guild - tear its radio down."""
    logger.info(f"Bot removed from {format_guild_log(guild)}")
    await registry.remove(guild.id)

# =============================================================================
# GRACEFUL SHUTDOWN
# =============================================================================

async def shutdown_bot():
    """
    Stop the watchdog, disconnect every session, close the gateway.

    Called by signal handlers (SIGTERM, SIGINT).
    """
    global _watchdog_task, _is_shutting_down

    if _is_shutting_down:
        return
    _is_shutting_down = True
    logger.info("Initiating graceful shutdown...")

    if _watchdog_task and not _watchdog_task.done():
        logger.info("Stopping stream watchdog...")
        _watchdog_task.cancel()
        try:
            await _watchdog_task
        except asyncio.CancelledError:
            pass

    await registry.shutdown()

    await update_presence(bot, None)

    logger.info("Closing bot connection...")
    await bot.close()
    logger.info("Shutdown complete")


def handle_shutdown_signal(signum, frame):
    """
    Signal handler for SIGTERM and SIGINT.

    Schedules the async shutdown on the bot's loop.
    """
    signal_name = signal.Signals(signum).name
    logger.info(f"Received {signal_name} signal, shutting down...")

    if bot.loop and bot.loop.is_running():
        bot.loop.create_task(shutdown_bot())
    else:
        logger.warning("No event loop running, forcing exit")
        os._exit(0)

# =============================================================================
# STARTUP CHECKS
# =============================================================================

def check_startup() -> str:
    """
    Validate configuration and check ffmpeg before connecting.

    Returns:
        The ffmpeg version line

    Exits with code 1 if anything is wrong.
    """
    problems = validate_settings()
    for problem in problems:
        logger.critical(problem)

    decoder_version = check_ffmpeg(FFMPEG_EXECUTABLE)
    if decoder_version is None:
        logger.critical(f"ffmpeg not found or not working ('{FFMPEG_EXECUTABLE}') - install it or set FFMPEG_EXECUTABLE")
        problems.append('ffmpeg')

    if problems:
        logger.critical("Bot cannot start, fix the problems above")
        sys.exit(1)

    logger.info(f"Decoder: {decoder_version}")
    return decoder_version

# =============================================================================
# MAIN
# =============================================================================

if __name__ == '__main__':
    decoder_version = check_startup()

    from handlers import slash_commands
    slash_commands.setup(bot, registry, decoder_version=decoder_version)

    signal.signal(signal.SIGINT, handle_shutdown_signal)
    signal.signal(signal.SIGTERM, handle_shutdown_signal)

    logger.info("Starting bot...")

    try:
        bot.run(DISCORD_BOT_TOKEN)
    except KeyboardInterrupt:
        logger.info("Bot stopped by user (Ctrl+C)")
    except Exception as e:
        logger.error(f"Bot crashed: {e}", exc_info=True)
        sys.exit(1)
