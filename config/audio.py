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
AUDIO SETTINGS
========================================================================================================

Decoder (ffmpeg) command line and volume limits.

PRIORITY:
  Python setting (if not None) > .env file > built-in default

========================================================================================================
"""

import os
from typing import Final

# =========================================================================================================
# Internal helper functions (used by settings below)
# =========================================================================================================

def _get_config(python_value, env_name, default, converter=None):
    """Get configuration value using priority system (Python > .env > default)."""
    if python_value is not None:
        return python_value
    env_value = os.getenv(env_name)
    if env_value is not None:
        return converter(env_value) if converter else env_value
    return default

# =========================================================================================================
# FFMPEG SETTINGS
# =========================================================================================================

# ----------------------------------------
# FFmpeg Binary
# ----------------------------------------
# Name or full path of the ffmpeg executable
#
FFMPEG_EXECUTABLE = None  # Leave as None to use .env or default ('ffmpeg')
FFMPEG_EXECUTABLE = _get_config(FFMPEG_EXECUTABLE, 'FFMPEG_EXECUTABLE', 'ffmpeg')

# ----------------------------------------
# FFmpeg Input Options
# ----------------------------------------
# Placed before -i. Tuned for live network streams:
#   -nostdin = Don't read from stdin (prevents hangs)
#   -loglevel error = Only show errors
#   -analyzeduration 0 = Start decoding immediately
#   -reconnect* = Let ffmpeg itself ride out short HTTP hiccups
#
FFMPEG_BEFORE_OPTIONS: Final[str] = (
    '-nostdin -hide_banner -loglevel error -analyzeduration 0 '
    '-reconnect 1 -reconnect_streamed 1 -reconnect_delay_max 5'
)

# ----------------------------------------
# FFmpeg Output Options
# ----------------------------------------
# Extra output flags. disnake appends the PCM layout Discord voice needs
# (-f s16le -ar 48000 -ac 2) on its own, so only drop video here
#
FFMPEG_OUTPUT_OPTIONS: Final[str] = '-vn'

# =========================================================================================================
# VOLUME
# =========================================================================================================

# ----------------------------------------
# Default Volume
# ----------------------------------------
# Volume for new sessions, 0.0 - 1.0 (0.5 = 50%)
#
DEFAULT_VOLUME = None  # Leave as None to use .env or default (0.5)
DEFAULT_VOLUME = _get_config(DEFAULT_VOLUME, 'DEFAULT_VOLUME', 0.5, float)

if not 0.0 <= DEFAULT_VOLUME <= 1.0:
    raise ValueError(f"Invalid DEFAULT_VOLUME {DEFAULT_VOLUME}. Must be between 0.0 and 1.0")

# /volume accepts whole percentages in this range
VOLUME_MIN: Final[int] = 1
VOLUME_MAX: Final[int] = 100

__all__ = [
    'FFMPEG_EXECUTABLE',
    'FFMPEG_BEFORE_OPTIONS',
    'FFMPEG_OUTPUT_OPTIONS',
    'DEFAULT_VOLUME',
    'VOLUME_MIN',
    'VOLUME_MAX',
]
