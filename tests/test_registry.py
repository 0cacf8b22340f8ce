"""
Tests for the session registry.
"""

import asyncio
import unittest

from core.errors import DecodeUnavailable, VoiceConnectionError
from core.registry import SessionRegistry
from core.session import SessionStatus
from fakes import (
    CHANNEL_ID,
    GUILD_ID,
    OTHER_CHANNEL_ID,
    RADIO_URL,
    FakeConnector,
    FakeSleep,
    FakeSourceFactory,
    settle,
)


class TestSessionRegistry(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.sleep = FakeSleep()
        self.sources = FakeSourceFactory()
        self.connector = FakeConnector()
        self.registry = SessionRegistry(
            radio_url=RADIO_URL,
            source_factory=self.sources,
            scheduler_options={'sleep': self.sleep},
            reconnect_settle_delay=0,
        )

    async def test_lookup_on_empty_registry(self):
        self.assertIsNone(self.registry.get(GUILD_ID))
        self.assertNotIn(GUILD_ID, self.registry)
        self.assertEqual(len(self.registry), 0)
        self.assertFalse(await self.registry.remove(GUILD_ID))

    async def test_create_registers_session(self):
        session = await self.registry.create_or_replace(GUILD_ID, CHANNEL_ID, self.connector)
        self.assertIs(self.registry.get(GUILD_ID), session)
        self.assertEqual(self.registry.sessions(), [session])
        self.assertEqual(session.voice_channel_id, CHANNEL_ID)

    async def test_repeated_start_keeps_one_session(self):
        first = await self.registry.create_or_replace(GUILD_ID, CHANNEL_ID, self.connector)
        for _ in range(3):
            again = await self.registry.create_or_replace(GUILD_ID, CHANNEL_ID, self.connector)
            self.assertIs(again, first)
        await settle()
        self.assertEqual(len(self.registry), 1)
        self.assertEqual(self.connector.calls, [CHANNEL_ID])
        self.assertEqual(self.connector.last.play_calls, 4)
        self.assertEqual(sum(not s.cleaned for s in self.sources.created), 1)

    async def test_start_in_other_channel_replaces_session(self):
        first = await self.registry.create_or_replace(GUILD_ID, CHANNEL_ID, self.connector)
        old_vc = self.connector.last
        second = await self.registry.create_or_replace(GUILD_ID, OTHER_CHANNEL_ID, self.connector)

        self.assertIsNot(first, second)
        self.assertIs(first.status, SessionStatus.DISCONNECTED)
        self.assertEqual(old_vc.disconnect_calls, 1)
        self.assertIs(self.registry.get(GUILD_ID), second)
        self.assertEqual(second.voice_channel_id, OTHER_CHANNEL_ID)

    async def test_overlapping_starts_open_one_connection(self):
        self.connector.gate = asyncio.get_running_loop().create_future()
        first = asyncio.create_task(self.registry.create_or_replace(GUILD_ID, CHANNEL_ID, self.connector))
        second = asyncio.create_task(self.registry.create_or_replace(GUILD_ID, CHANNEL_ID, self.connector))
        await settle()
        self.connector.gate.set_result(None)

        a, b = await asyncio.gather(first, second)
        self.assertIs(a, b)
        self.assertEqual(len(self.registry), 1)
        self.assertEqual(len(self.connector.clients), 1)
        self.assertEqual(self.registry._locks, {})

    async def test_connect_failure_leaves_no_entry(self):
        self.connector.fail = 1
        with self.assertRaises(VoiceConnectionError):
            await self.registry.create_or_replace(GUILD_ID, CHANNEL_ID, self.connector)
        self.assertNotIn(GUILD_ID, self.registry)
        self.assertEqual(self.sleep.pending(), [])

    async def test_decoder_failure_tears_connection_down(self):
        self.sources.fail_next = 1
        with self.assertRaises(DecodeUnavailable):
            await self.registry.create_or_replace(GUILD_ID, CHANNEL_ID, self.connector)
        await settle()
        self.assertNotIn(GUILD_ID, self.registry)
        self.assertEqual(self.connector.last.disconnect_calls, 1)
        self.assertEqual(self.sleep.pending(), [])

    async def test_remove_disconnects(self):
        session = await self.registry.create_or_replace(GUILD_ID, CHANNEL_ID, self.connector)
        vc = self.connector.last
        self.assertTrue(await self.registry.remove(GUILD_ID))
        self.assertNotIn(GUILD_ID, self.registry)
        self.assertIs(session.status, SessionStatus.DISCONNECTED)
        self.assertEqual(vc.disconnect_calls, 1)
        self.assertFalse(await self.registry.remove(GUILD_ID))
        self.assertNotIn(GUILD_ID, self.registry._locks)

    async def test_remove_cancels_pending_recovery(self):
        session = await self.registry.create_or_replace(GUILD_ID, CHANNEL_ID, self.connector)
        self.connector.last.finish(RuntimeError("decoder died"))
        await settle()
        self.assertTrue(session.scheduler.pending)

        await self.registry.remove(GUILD_ID)
        await settle()
        self.assertFalse(session.scheduler.pending)
        self.assertEqual(self.sleep.pending(), [])
        self.assertEqual(len(self.sources.created), 1)

    async def test_guild_locks_do_not_pile_up(self):
        for offset in range(5):
            await self.registry.create_or_replace(GUILD_ID + offset, CHANNEL_ID, self.connector)
        self.connector.fail = 1
        with self.assertRaises(VoiceConnectionError):
            await self.registry.create_or_replace(GUILD_ID + 99, CHANNEL_ID, self.connector)
        for offset in range(5):
            await self.registry.remove(GUILD_ID + offset)
        self.assertEqual(self.registry._locks, {})

    async def test_waiting_caller_keeps_the_lock(self):
        self.connector.gate = asyncio.get_running_loop().create_future()
        first = asyncio.create_task(self.registry.create_or_replace(GUILD_ID, CHANNEL_ID, self.connector))
        await settle()
        removal = asyncio.create_task(self.registry.remove(GUILD_ID))
        await settle()
        self.assertEqual(self.registry._locks[GUILD_ID][1], 2)

        self.connector.gate.set_result(None)
        await first
        self.assertTrue(await removal)
        self.assertEqual(self.registry._locks, {})

    async def test_discard_only_drops_matching_session(self):
        session = await self.registry.create_or_replace(GUILD_ID, CHANNEL_ID, self.connector)
        stale = await self.registry.create_or_replace(GUILD_ID + 1, CHANNEL_ID, self.connector)
        stale.guild_id = GUILD_ID
        self.registry.discard(stale)
        self.assertIs(self.registry.get(GUILD_ID), session)

    async def test_shutdown_disconnects_everything(self):
        await self.registry.create_or_replace(GUILD_ID, CHANNEL_ID, self.connector)
        await self.registry.create_or_replace(GUILD_ID + 1, CHANNEL_ID, self.connector)
        await self.registry.shutdown()
        self.assertEqual(len(self.registry), 0)
        self.assertTrue(all(vc.disconnect_calls == 1 for vc in self.connector.clients))
        self.assertTrue(all(s.cleaned for s in self.sources.created))
        self.assertEqual(self.registry._locks, {})


if __name__ == "__main__":
    unittest.main()
