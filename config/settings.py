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
========================================================================================================
BASIC SETTINGS
========================================================================================================

HOW TO CHANGE SETTINGS:
  1. Find the setting you want to change below
  2. Replace 'None' with your value
  3. Save the file and restart the bot

  Example:
    RADIO_URL = None                               ← Default (uses .env)
    RADIO_URL = 'https://stream.example.com/live'  ← Override

DOCKER USERS:
  Leave settings as 'None' and create a .env file instead (see .env.example)

PRIORITY:
  Python setting (if not None) > .env file > built-in default

RESTART REQUIRED:
  All changes require restarting the bot to take effect.

FOR OTHER SETTINGS:
  - Decoder/volume tweaking: See audio.py
  - Reconnect timing: See timing.py

========================================================================================================
"""

import os
from typing import List

from dotenv import load_dotenv

load_dotenv()

# =========================================================================================================
# Internal helper functions (used by settings below - scroll down to skip to settings)
# =========================================================================================================

def _str_to_bool(value):
    """Convert string to boolean (for environment variables)."""
    if isinstance(value, bool):
        return value
    return str(value).lower() in ('true', '1', 'yes', 'on')

def _get_config(python_value, env_name, default, converter=None):
    """Get configuration value using priority system (Python > .env > default)."""
    if python_value is not None:
        return python_value
    env_value = os.getenv(env_name)
    if env_value is not None:
        return converter(env_value) if converter else env_value
    return default

# =========================================================================================================
# CREDENTIALS
# =========================================================================================================

# ----------------------------------------
# Bot Token
# ----------------------------------------
# Never commit your token. Put it in .env as DISCORD_BOT_TOKEN=...
#
DISCORD_BOT_TOKEN = None  # Leave as None to use .env
DISCORD_BOT_TOKEN = _get_config(DISCORD_BOT_TOKEN, 'DISCORD_BOT_TOKEN', '')

# =========================================================================================================
# RADIO
# =========================================================================================================

# ----------------------------------------
# Stream URL
# ----------------------------------------
# The one upstream stream every guild listens to. Anything ffmpeg can open
# works (Icecast/Shoutcast mp3 or aac, HLS playlists, ...).
#
RADIO_URL = None  # Leave as None to use .env
RADIO_URL = _get_config(RADIO_URL, 'RADIO_URL', '')

# ----------------------------------------
# Stream Display Name
# ----------------------------------------
# Shown in replies and in the bot's "Listening to ..." status
#
RADIO_NAME = None  # Leave as None to use .env or default ('WebRadio 24/7')
RADIO_NAME = _get_config(RADIO_NAME, 'RADIO_NAME', 'WebRadio 24/7')

# =========================================================================================================
# BOT APPEARANCE
# =========================================================================================================

# ----------------------------------------
# Bot Status Indicator
# ----------------------------------------
# Options:
#   'online' = Green dot (default)
#   'dnd' = Red dot (do not disturb)
#   'idle' = Yellow dot (away)
#   'invisible' = Gray dot (appears offline but still works)
#
BOT_STATUS = None  # Leave as None to use .env or default ('online')
BOT_STATUS = _get_config(BOT_STATUS, 'BOT_DISCORD_STATUS', 'online')

# Validation
if BOT_STATUS not in ['online', 'dnd', 'idle', 'invisible']:
    raise ValueError(f"Invalid BOT_STATUS '{BOT_STATUS}'. Must be: online, dnd, idle, or invisible")

# ----------------------------------------
# Show Radio In Presence
# ----------------------------------------
# True = "Listening to <RADIO_NAME>" under the bot's name
# False = No activity text
#
SHOW_PRESENCE = None  # Leave as None to use .env or default (True)
SHOW_PRESENCE = _get_config(SHOW_PRESENCE, 'SHOW_PRESENCE', True, _str_to_bool)

# =========================================================================================================
# LOGGING
# =========================================================================================================

# ----------------------------------------
# Log Level
# ----------------------------------------
# DEBUG shows guild IDs and every recovery step; INFO is right for production
#
LOG_LEVEL = None  # Leave as None to use .env or default ('INFO')
LOG_LEVEL = _get_config(LOG_LEVEL, 'LOG_LEVEL', 'INFO', str.upper)

if LOG_LEVEL not in ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']:
    print(f"Warning: Invalid LOG_LEVEL '{LOG_LEVEL}'. Using 'INFO'.")
    LOG_LEVEL = 'INFO'

# ----------------------------------------
# Quiet Library Logs
# ----------------------------------------
# True = Only show disnake warnings and errors (default)
# False = Show disnake logs at LOG_LEVEL (very noisy on voice connects)
#
SUPPRESS_LIBRARY_LOGS = None  # Leave as None to use .env or default (True)
SUPPRESS_LIBRARY_LOGS = _get_config(SUPPRESS_LIBRARY_LOGS, 'SUPPRESS_LIBRARY_LOGS', True, _str_to_bool)


def validate_settings() -> List[str]:
    """Return a list of boot-time configuration errors (empty = OK)."""
    errors: List[str] = []
    if not DISCORD_BOT_TOKEN:
        errors.append("DISCORD_BOT_TOKEN is required (set it in .env)")
    if not RADIO_URL:
        errors.append("RADIO_URL is required (set it in .env)")
    return errors


__all__ = [
    'DISCORD_BOT_TOKEN',
    'RADIO_URL',
    'RADIO_NAME',
    'BOT_STATUS',
    'SHOW_PRESENCE',
    'LOG_LEVEL',
    'SUPPRESS_LIBRARY_LOGS',
    'validate_settings',
]
