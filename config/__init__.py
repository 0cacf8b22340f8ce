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

# =========================================================================================================
# Load Configuration
# =========================================================================================================
# Each module resolves its own values (Python > .env > default).
# Import from here: `from config import RADIO_URL, RECONNECT_BASE_DELAY`
from .settings import *
from .audio import *
from .timing import *
from .messages import *

from . import settings as _settings, audio as _audio, timing as _timing, messages as _messages

__all__ = [*_settings.__all__, *_audio.__all__, *_timing.__all__, *_messages.__all__]
