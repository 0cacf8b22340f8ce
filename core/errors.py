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
Radio Errors

Two families:
- Recoverable faults (VoiceConnectionError, DecodeUnavailable, PlaybackError)
  are converted into scheduled recovery by the session.
- Command faults (ValidationError, StateError) are reported straight back to
  the user and never trigger recovery.
"""


class RadioError(Exception):
    """Base class for all radio errors."""


class VoiceConnectionError(RadioError):
    """Voice transport could not be joined, or dropped."""


class DecodeUnavailable(RadioError):
    """Decoder process failed to start or exited."""


class PlaybackError(RadioError):
    """Player-level fault."""


class ValidationError(RadioError):
    """Bad command argument (e.g. volume out of range)."""


class StateError(RadioError):
    """Operation is not valid for the session's current status."""


RECOVERABLE_ERRORS = (VoiceConnectionError, DecodeUnavailable, PlaybackError)
