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
Discord API Helper Functions

Safe wrappers around the Discord calls the radio makes. All of them accept
None and swallow non-critical API errors (logged at debug level).

- format_guild_log() / format_user_log(): readable names for log lines
- sanitize_for_format(): escape braces before str.format()
- can_connect_to_channel(): connect+speak permission check
- safe_disconnect(): idempotent voice disconnect
- safe_voice_state_change(): self-deafen after joining
- update_presence(): "Listening to <radio>" with dedupe
"""

import asyncio
import logging
from time import monotonic as _now
from typing import Optional

import disnake

logger = logging.getLogger(__name__)

from config.settings import BOT_STATUS

# Bot-wide presence state
_last_presence_update: float = 0
_current_presence_text: Optional[str] = None
_presence_lock = asyncio.Lock()


# =============================================================================
# LOGGING FORMATTERS
# =============================================================================

def format_guild_log(guild_or_id, bot=None) -> str:
    """
    Format a guild for log lines.

    Args:
        guild_or_id: Guild object, guild ID (int), or None
        bot: Bot instance, used to resolve IDs to names

    Returns:
        - Normal mode: "ServerName" or "Guild #123"
        - DEBUG mode: "ServerName (#123)"
    """
    if guild_or_id is None:
        return "DM"

    if isinstance(guild_or_id, int):
        guild = bot.get_guild(guild_or_id) if bot else None
        guild_id = guild_or_id
    else:
        guild = guild_or_id
        guild_id = getattr(guild, 'id', None)

    name = getattr(guild, 'name', None) if guild else None
    if isinstance(name, str):
        if logger.isEnabledFor(logging.DEBUG):
            return f"{name} (#{guild_id})"
        return name

    # Bot kicked, guild not cached yet, or no bot given
    return f"Guild #{guild_id}" if guild_id else "Unknown"


def format_user_log(user_or_id, bot=None) -> str:
    """Format a user for log lines. Same rules as format_guild_log()."""
    if user_or_id is None:
        return "Unknown"

    if isinstance(user_or_id, int):
        user = bot.get_user(user_or_id) if bot else None
        user_id = user_or_id
    else:
        user = user_or_id
        user_id = getattr(user, 'id', None)

    name = getattr(user, 'name', None) if user else None
    if isinstance(name, str):
        if logger.isEnabledFor(logging.DEBUG):
            return f"{name} (#{user_id})"
        return name

    return f"User #{user_id}" if user_id else "Unknown"


def sanitize_for_format(text: str) -> str:
    """
    Escape braces in user-controlled strings before str.format().

    Channel and server names can contain { and }, which would make
    MESSAGES[...].format() raise KeyError.

    Example:
        >>> sanitize_for_format("Lofi {24/7}")
        'Lofi {{24/7}}'
    """
    return text.replace('{', '{{').replace('}', '}}')


# =============================================================================
# VOICE
# =============================================================================

def can_connect_to_channel(channel: Optional[disnake.VoiceChannel]) -> bool:
    """
    Check connect+speak permissions before trying to join.

    Returns False if guild.me isn't available yet (startup race).
    """
    if not channel:
        return False
    if not channel.guild.me:
        return False
    perms = channel.permissions_for(channel.guild.me)
    return bool(perms and perms.connect and perms.speak)


async def safe_disconnect(voice_client, force: bool = True) -> bool:
    """
    Disconnect from voice, never raising.

    Args:
        voice_client: Voice client to disconnect (None is a no-op)
        force: Disconnect even if still playing

    Returns:
        bool: True if disconnected (or nothing to do), False on error
    """
    if not voice_client:
        return True
    try:
        await voice_client.disconnect(force=force)
    except (disnake.ClientException, disnake.HTTPException) as e:
        logger.debug("Disconnect failed (non-critical): %s", e)
        return False
    except (OSError, RuntimeError, asyncio.TimeoutError) as e:
        # aiohttp transport errors during shutdown (e.g. ClientConnectionResetError)
        logger.debug("Disconnect failed with transport error (non-critical): %s", e)
        return False
    else:
        return True


async def safe_voice_state_change(guild: disnake.Guild, channel: disnake.VoiceChannel, self_deaf: bool = True) -> bool:
    """
    Change the bot's own voice state (self-deafen) without raising.

    Returns:
        bool: True if changed, False otherwise
    """
    try:
        await guild.change_voice_state(channel=channel, self_deaf=self_deaf)
    except (disnake.ClientException, disnake.HTTPException) as e:
        logger.debug("Voice state change failed (non-critical): %s", e)
        return False
    else:
        return True


# =============================================================================
# PRESENCE
# =============================================================================

def _get_status_enum() -> disnake.Status:
    """Convert BOT_STATUS to disnake.Status (online if unknown)."""
    status_map = {
        'online': disnake.Status.online,
        'dnd': disnake.Status.dnd,
        'idle': disnake.Status.idle,
        'invisible': disnake.Status.invisible,
    }
    cfg = str(BOT_STATUS).lower()
    if cfg not in status_map:
        logger.warning(f"Invalid BOT_STATUS '{BOT_STATUS}', defaulting to 'online'")
    return status_map.get(cfg, disnake.Status.online)


async def update_presence(bot, status_text: Optional[str]) -> bool:
    """
    Update the bot's presence ("Listening to <status_text>").

    Holds the lock for the whole dedupe → API call → state update sequence;
    state only changes on success so a failed call can be retried.

    Args:
        bot: Discord bot instance
        status_text: Text to show (None clears the activity)

    Returns:
        bool: True if updated (or already current), False on API error
    """
    global _last_presence_update, _current_presence_text

    current_time = _now()

    async with _presence_lock:
        if status_text == _current_presence_text and current_time - _last_presence_update < 10:
            return True

        try:
            status = _get_status_enum()
            if status_text:
                await bot.change_presence(
                    activity=disnake.Activity(type=disnake.ActivityType.listening, name=status_text),
                    status=status,
                )
            else:
                await bot.change_presence(activity=None, status=status)

            _last_presence_update = current_time
            _current_presence_text = status_text
        except (disnake.ClientException, disnake.HTTPException) as e:
            logger.debug("Presence update failed (non-critical): %s", e)
            return False
        else:
            return True
