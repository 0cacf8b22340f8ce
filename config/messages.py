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
Messages Configuration

Every user-facing string. Placeholders use str.format(); run user-controlled
values through sanitize_for_format() first.
"""

MESSAGES = {
    # ===================================================================
    # CONFIRMATIONS
    # ===================================================================
    'started': "🎶 **{radio}** is live in **{channel}** (24/7)",
    'restarted': "🔄 **{radio}** restarted in **{channel}**",
    'stopped': "⏹️ Radio stopped (I'm staying in the channel)",
    'disconnected': "🔌 Left the voice channel",
    'paused': "⏸️ Paused",
    'resumed': "▶️ Resumed",
    'volume_set': "🔊 Volume set to {level}%",
    'volume_saved': "🔊 Volume saved at {level}%, it applies when the stream comes back",

    # ===================================================================
    # ERRORS
    # ===================================================================
    'error_not_in_voice': "❌ Join a voice channel first!",
    'error_no_session': "❌ The radio isn't running here. Use `/play` first.",
    'error_no_permission': "🚫 I can't join or speak in **{channel}**",
    'error_cant_connect': "❌ Can't join that channel: {error}",
    'error_decoder': "❌ Couldn't open the stream: {error}",
    'error_invalid_volume': "❌ Volume must be between {min} and {max}",
    'error_invalid_state': "😒 {error}",
    'error_occurred': "❌ Something went wrong while running that command",

    # ===================================================================
    # STATUS EMBED
    # ===================================================================
    'status_title': "📻 Radio Status",
    'status_none': "Not running in this server",
    'status_no_retry': "None",
    'status_retry': "{kind} in {delay:.0f}s",

    # ===================================================================
    # INFO EMBED
    # ===================================================================
    'info_title': "ℹ️ Bot Info",
}

# Human-readable labels for SessionStatus values
STATUS_LABELS = {
    'connecting': "🟡 Connecting",
    'playing': "🟢 Playing",
    'paused': "⏸️ Paused",
    'stopped': "⏹️ Stopped",
    'disconnected': "🔌 Disconnected",
}

# Human-readable labels for RecoveryKind values
RECOVERY_LABELS = {
    'stream': "Stream retry",
    'connection': "Voice rejoin",
}

# Command descriptions
COMMAND_DESCRIPTIONS = {
    'play': 'Start the radio in your voice channel',
    'stop': 'Stop the radio (stay connected)',
    'disconnect': 'Stop the radio and leave the voice channel',
    'pause': 'Pause the radio',
    'resume': 'Resume the radio',
    'restart': 'Restart the stream',
    'status': 'Show radio status for this server',
    'volume': 'Change the volume',
    'info': 'Show bot diagnostics',
}

# Embed colors
BOT_COLORS = {
    'success': 0x00FF00,
    'info': 0x5865F2,
    'warning': 0xFFA500,
    'error': 0xFF0000,
}

__all__ = ['MESSAGES', 'STATUS_LABELS', 'RECOVERY_LABELS', 'COMMAND_DESCRIPTIONS', 'BOT_COLORS']
