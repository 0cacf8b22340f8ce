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
Stream Decoder

Turns the upstream radio URL into a disnake audio source backed by ffmpeg.

- StreamDecoder: opens/closes one disnake.FFmpegPCMAudio for one URL
- make_radio_source(): fresh source wrapped for inline volume control
- check_ffmpeg(): boot-time check of the ffmpeg binary

disnake owns the ffmpeg process: FFmpegPCMAudio spawns it, reads PCM frames
and kills it in cleanup(). The player calls cleanup() when a stream ends and
the session calls it on teardown, so cleanup must tolerate repeats.
"""

import logging
import subprocess
import sys
from typing import Optional

import disnake

logger = logging.getLogger(__name__)

from config.audio import (
    FFMPEG_EXECUTABLE,
    FFMPEG_BEFORE_OPTIONS,
    FFMPEG_OUTPUT_OPTIONS,
)
from core.errors import DecodeUnavailable

# Keep ffmpeg from flashing a console window on Windows
_CREATION_FLAGS = subprocess.CREATE_NO_WINDOW if sys.platform == 'win32' else 0


class StreamDecoder:
    """
    One ffmpeg-backed PCM source for one URL.

    A live radio never ends on its own; the source only runs dry when ffmpeg
    exits (upstream closed, network died) or is killed by close().
    """

    def __init__(
        self,
        url: str,
        executable: str = FFMPEG_EXECUTABLE,
        before_options: str = FFMPEG_BEFORE_OPTIONS,
        options: str = FFMPEG_OUTPUT_OPTIONS,
    ):
        self.url = url
        self.executable = executable
        self.before_options = before_options
        self.options = options
        self._audio: Optional[disnake.FFmpegPCMAudio] = None

    @property
    def is_open(self) -> bool:
        return self._audio is not None

    def open(self) -> disnake.FFmpegPCMAudio:
        """
        Start ffmpeg and return the audio source reading from it.

        Raises:
            DecodeUnavailable: ffmpeg missing or could not be started
        """
        if self._audio is not None:
            raise DecodeUnavailable("Decoder already opened")

        try:
            audio = disnake.FFmpegPCMAudio(
                self.url,
                executable=self.executable,
                before_options=self.before_options,
                options=self.options,
            )
        except disnake.ClientException as e:
            # disnake reports "ffmpeg was not found." and spawn failures this way
            raise DecodeUnavailable(str(e)) from e
        except OSError as e:
            raise DecodeUnavailable(f"Could not start {self.executable}: {e}") from e

        self._audio = audio
        logger.debug("Decoder started for %s", self.url)
        return audio

    def close(self) -> None:
        """Kill ffmpeg through disnake. Safe to call repeatedly."""
        audio, self._audio = self._audio, None
        if audio is None:
            return
        audio.cleanup()
        logger.debug("Decoder stopped for %s", self.url)


def make_radio_source(url: str, volume: float) -> disnake.PCMVolumeTransformer:
    """
    Create a fresh, volume-controllable source for the radio stream.

    Sources are single-use: a new ffmpeg process is spawned for every call.
    Cleaning up the transformer cleans up the ffmpeg source it wraps.

    Raises:
        DecodeUnavailable: if the decoder cannot be started
    """
    return disnake.PCMVolumeTransformer(StreamDecoder(url).open(), volume=volume)


def check_ffmpeg(executable: str = FFMPEG_EXECUTABLE) -> Optional[str]:
    """
    Check the ffmpeg binary once at boot.

    Returns:
        First line of `ffmpeg -version`, or None if ffmpeg is missing/broken
    """
    try:
        result = subprocess.run(
            [executable, '-version'],
            stdin=subprocess.DEVNULL,
            capture_output=True,
            timeout=10,
            creationflags=_CREATION_FLAGS,
        )
    except (OSError, subprocess.SubprocessError) as e:
        logger.debug("ffmpeg check failed: %s", e)
        return None

    if result.returncode != 0:
        return None
    output = result.stdout.decode(errors='replace').strip()
    return output.splitlines()[0] if output else executable
