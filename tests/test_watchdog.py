"""
Tests for the stream watchdog's per-session check.
"""

import unittest

from core.registry import SessionRegistry
from core.scheduler import RecoveryKind
from core.session import SessionStatus
from systems.voice_manager import VoiceManager
from systems.watchdog import check_session
from fakes import (
    CHANNEL_ID,
    GUILD_ID,
    RADIO_URL,
    FakeConnector,
    FakeSleep,
    FakeSourceFactory,
    FakeVoiceClient,
    settle,
)


class TestCheckSession(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.sleep = FakeSleep()
        self.connector = FakeConnector()
        self.registry = SessionRegistry(
            radio_url=RADIO_URL,
            source_factory=FakeSourceFactory(),
            scheduler_options={'sleep': self.sleep},
            reconnect_settle_delay=0,
        )
        self.session = await self.registry.create_or_replace(GUILD_ID, CHANNEL_ID, self.connector)

    async def test_healthy_session_is_left_alone(self):
        self.assertFalse(check_session(self.session))
        self.assertFalse(self.session.scheduler.pending)

    async def test_dead_voice_triggers_rejoin(self):
        self.connector.last.connected = False
        self.assertTrue(check_session(self.session))
        self.assertIs(self.session.pending_recovery, RecoveryKind.CONNECTION)

    async def test_silent_player_triggers_stream_retry(self):
        # Player stopped without its callback ever reaching us
        self.connector.last.playing = False
        self.assertTrue(check_session(self.session))
        self.assertIs(self.session.pending_recovery, RecoveryKind.STREAM)
        await settle()
        self.assertEqual(self.sleep.pending(), [5.0])

    async def test_skips_sessions_already_recovering(self):
        self.connector.last.connected = False
        self.session.on_connection_disconnected()
        self.assertFalse(check_session(self.session))

    async def test_skips_stopped_sessions(self):
        self.session.stop()
        self.connector.last.connected = False
        self.assertFalse(check_session(self.session))
        self.assertIs(self.session.status, SessionStatus.STOPPED)


class TestVoiceState(unittest.TestCase):
    def test_voice_state_check(self):
        vc = FakeVoiceClient(CHANNEL_ID)
        self.assertEqual(VoiceManager.get_voice_state_safe(vc), (False, False))
        vc.playing = True
        self.assertEqual(VoiceManager.get_voice_state_safe(vc), (True, False))
        vc.connected = False
        self.assertIsNone(VoiceManager.get_voice_state_safe(vc))
        self.assertIsNone(VoiceManager.get_voice_state_safe(None))


if __name__ == "__main__":
    unittest.main()
