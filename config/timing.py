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
TIMING SETTINGS
========================================================================================================

Recovery and voice connection timing. All values are in SECONDS.

DON'T CHANGE THESE unless the upstream stream or your network needs it.

========================================================================================================
"""

# =========================================================================================================
# STREAM RECOVERY (exponential backoff)
# =========================================================================================================
#
# When the stream errors, the bot waits RECONNECT_BASE_DELAY before retrying.
# Every failed retry doubles the wait, up to RECONNECT_MAX_DELAY.
# The wait only resets once a stream has stayed up for STREAM_HEALTHY_AFTER.
# A stream that connects and then dies right away counts as a failed retry.
#
# Example with defaults: 10s → 20s → 40s → 60s → 60s → ...

RECONNECT_BASE_DELAY = 10.0        # Wait after a player/decoder error
                                   # LOWER = recovers faster, HIGHER = gentler on a dead upstream

RECONNECT_IDLE_DELAY = 5.0         # Wait after the stream simply ended (upstream closed the socket)
                                   # Usually a quick blip, so retry sooner than after a hard error

RECONNECT_MAX_DELAY = 60.0         # Backoff ceiling
                                   # Bounds retry storms against a persistently-down upstream

STREAM_HEALTHY_AFTER = 30.0        # A stream that played this long is healthy and resets the backoff
                                   # Shorter runs keep doubling the wait

# =========================================================================================================
# CONNECTION RECOVERY (fixed interval)
# =========================================================================================================
#
# Voice drops are assumed transient and retried at a fixed interval, always
# rejoining the same voice channel.

VOICE_RECOVERY_DELAY = 5.0         # Wait before each rejoin attempt after a voice drop

# =========================================================================================================
# VOICE CONNECTION TIMING
# =========================================================================================================

VOICE_CONNECT_TIMEOUT = 5.0        # Max time for a voice handshake before giving up
VOICE_RECONNECT_DELAY = 0.30       # Wait between tearing down a dead client and rejoining (300ms)

# =========================================================================================================
# WATCHDOG
# =========================================================================================================

WATCHDOG_INTERVAL = 30             # Seconds between stream watchdog sweeps
                                   # Catches sessions that missed a player/voice event

__all__ = [
    'RECONNECT_BASE_DELAY',
    'RECONNECT_IDLE_DELAY',
    'RECONNECT_MAX_DELAY',
    'STREAM_HEALTHY_AFTER',
    'VOICE_RECOVERY_DELAY',
    'VOICE_CONNECT_TIMEOUT',
    'VOICE_RECONNECT_DELAY',
    'WATCHDOG_INTERVAL',
]
