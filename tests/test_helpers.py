"""
Tests for the Discord helpers and reply formatting.
"""

import unittest
from types import SimpleNamespace
from unittest import mock

import disnake

from config import MESSAGES, VOLUME_MAX, VOLUME_MIN
from config.embeds import create_info_embed, create_status_embed
from core.errors import (
    DecodeUnavailable, PlaybackError, RadioError, StateError, ValidationError, VoiceConnectionError,
)
from core.scheduler import RecoveryKind
from core.session import SessionStatus
from handlers.slash_commands import error_message
from utils.discord_helpers import format_guild_log, safe_disconnect, sanitize_for_format


class TestFormatting(unittest.TestCase):
    def test_format_guild_log(self):
        self.assertEqual(format_guild_log(None), "DM")
        self.assertEqual(format_guild_log(123), "Guild #123")
        bot = mock.Mock()
        bot.get_guild.return_value = SimpleNamespace(id=123, name="Lofi Lounge")
        self.assertEqual(format_guild_log(123, bot), "Lofi Lounge")

    def test_sanitize_for_format(self):
        name = sanitize_for_format("Chill {24/7}")
        self.assertEqual(MESSAGES['error_no_permission'].format(channel=name), "🚫 I can't join or speak in **Chill {24/7}**")


class TestSafeDisconnect(unittest.IsolatedAsyncioTestCase):
    async def test_none_is_noop(self):
        self.assertTrue(await safe_disconnect(None))

    async def test_errors_are_swallowed(self):
        vc = mock.Mock()
        vc.disconnect = mock.AsyncMock(side_effect=disnake.ClientException("not connected"))
        self.assertFalse(await safe_disconnect(vc))
        vc.disconnect.assert_awaited_once_with(force=True)

    async def test_transport_errors_are_swallowed(self):
        vc = mock.Mock()
        vc.disconnect = mock.AsyncMock(side_effect=ConnectionResetError())
        self.assertFalse(await safe_disconnect(vc))


class TestReplies(unittest.TestCase):
    def test_error_messages(self):
        self.assertIn("Can't join", error_message(VoiceConnectionError("timed out")))
        self.assertIn("Couldn't open the stream", error_message(DecodeUnavailable("ffmpeg missing")))
        self.assertIn("Couldn't open the stream", error_message(PlaybackError("refused")))
        self.assertEqual(
            error_message(ValidationError("bad")),
            MESSAGES['error_invalid_volume'].format(min=VOLUME_MIN, max=VOLUME_MAX),
        )
        self.assertIn("already stopped", error_message(StateError("The radio is already stopped")))
        self.assertEqual(error_message(RadioError("?")), MESSAGES['error_occurred'])

    def test_status_embed(self):
        snapshot = {
            'voice_channel_id': 2222,
            'status': SessionStatus.CONNECTING,
            'volume': 50,
            'recovery': RecoveryKind.STREAM,
            'recovery_in': 9.6,
            'failures': 2,
        }
        embed = create_status_embed(snapshot, "WebRadio 24/7")
        fields = {field.name: field.value for field in embed.fields}
        self.assertEqual(fields['Volume'], "50%")
        self.assertEqual(fields['Channel'], "<#2222>")
        self.assertEqual(fields['Recovery'], "Stream retry in 10s")
        self.assertIn("2", embed.footer.text)

    def test_status_embed_without_session(self):
        embed = create_status_embed(None, "WebRadio 24/7")
        self.assertEqual(embed.description, MESSAGES['status_none'])

    def test_info_embed(self):
        embed = create_info_embed("WebRadio 24/7", 3, 5, 41.7, "ffmpeg version 6.1")
        fields = {field.name: field.value for field in embed.fields}
        self.assertEqual(fields['Active radios'], "3")
        self.assertEqual(fields['Gateway latency'], "42 ms")


if __name__ == "__main__":
    unittest.main()
