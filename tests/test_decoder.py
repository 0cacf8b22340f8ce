"""
Tests for the ffmpeg stream decoder and the volume-wrapped radio source.
"""

import subprocess
import unittest
from unittest import mock

import disnake

from config.audio import FFMPEG_BEFORE_OPTIONS, FFMPEG_OUTPUT_OPTIONS
from core.decoder import StreamDecoder, check_ffmpeg, make_radio_source
from core.errors import DecodeUnavailable

MISSING_BINARY = '/nonexistent/airwave-ffmpeg'
STREAM_URL = 'http://radio.test/stream'


class FakeAudio(disnake.AudioSource):
    """Stands in for disnake.FFmpegPCMAudio without spawning ffmpeg."""

    def __init__(self):
        self.cleanups = 0

    def read(self):
        return b''

    def cleanup(self):
        self.cleanups += 1


class TestStreamDecoder(unittest.TestCase):
    def test_missing_executable_is_decode_unavailable(self):
        decoder = StreamDecoder(STREAM_URL, executable=MISSING_BINARY)
        with self.assertRaises(DecodeUnavailable) as ctx:
            decoder.open()
        self.assertIsInstance(ctx.exception.__cause__, disnake.ClientException)
        self.assertFalse(decoder.is_open)

    def test_client_exception_is_decode_unavailable(self):
        error = disnake.ClientException('ffmpeg was not found.')
        with mock.patch('core.decoder.disnake.FFmpegPCMAudio', side_effect=error):
            with self.assertRaises(DecodeUnavailable) as ctx:
                StreamDecoder(STREAM_URL).open()
        self.assertIn('was not found', str(ctx.exception))

    def test_open_passes_ffmpeg_options(self):
        audio = FakeAudio()
        with mock.patch('core.decoder.disnake.FFmpegPCMAudio', return_value=audio) as ffmpeg:
            decoder = StreamDecoder(STREAM_URL, executable='/usr/bin/ffmpeg')
            self.assertIs(decoder.open(), audio)

        ffmpeg.assert_called_once_with(
            STREAM_URL,
            executable='/usr/bin/ffmpeg',
            before_options=FFMPEG_BEFORE_OPTIONS,
            options=FFMPEG_OUTPUT_OPTIONS,
        )
        self.assertTrue(decoder.is_open)

    def test_open_twice_is_refused(self):
        with mock.patch('core.decoder.disnake.FFmpegPCMAudio', return_value=FakeAudio()):
            decoder = StreamDecoder(STREAM_URL)
            decoder.open()
            with self.assertRaises(DecodeUnavailable):
                decoder.open()

    def test_close_cleans_up_once(self):
        audio = FakeAudio()
        with mock.patch('core.decoder.disnake.FFmpegPCMAudio', return_value=audio):
            decoder = StreamDecoder(STREAM_URL)
            decoder.open()
        decoder.close()
        decoder.close()
        self.assertEqual(audio.cleanups, 1)
        self.assertFalse(decoder.is_open)

    def test_close_before_open_is_noop(self):
        StreamDecoder(STREAM_URL).close()


class TestMakeRadioSource(unittest.TestCase):
    def test_wraps_ffmpeg_source_for_volume(self):
        audio = FakeAudio()
        with mock.patch('core.decoder.disnake.FFmpegPCMAudio', return_value=audio):
            source = make_radio_source(STREAM_URL, 0.3)
        self.assertIsInstance(source, disnake.PCMVolumeTransformer)
        self.assertAlmostEqual(source.volume, 0.3)
        self.assertIs(source.original, audio)

        source.cleanup()
        self.assertEqual(audio.cleanups, 1)

    def test_decoder_failure_propagates(self):
        error = disnake.ClientException('ffmpeg was not found.')
        with mock.patch('core.decoder.disnake.FFmpegPCMAudio', side_effect=error):
            with self.assertRaises(DecodeUnavailable):
                make_radio_source(STREAM_URL, 0.5)


class TestCheckFfmpeg(unittest.TestCase):
    def test_missing_binary(self):
        self.assertIsNone(check_ffmpeg(MISSING_BINARY))

    def test_reports_first_version_line(self):
        result = subprocess.CompletedProcess(
            args=['ffmpeg', '-version'], returncode=0,
            stdout=b'ffmpeg version 6.1 Copyright (c) 2000-2023\nbuilt with gcc\n', stderr=b'',
        )
        with mock.patch('core.decoder.subprocess.run', return_value=result):
            self.assertEqual(check_ffmpeg('ffmpeg'), 'ffmpeg version 6.1 Copyright (c) 2000-2023')


if __name__ == "__main__":
    unittest.main()
