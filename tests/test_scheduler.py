"""
Tests for the per-guild recovery scheduler.
"""

import unittest

from core.scheduler import ReconnectScheduler, RecoveryKind
from fakes import FakeSleep, settle


class SchedulerTestCase(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.sleep = FakeSleep()
        self.active = True
        self.stream_results = []
        self.connection_results = []
        self.stream_attempts = 0
        self.connection_attempts = 0
        self.scheduler = ReconnectScheduler(
            42,
            is_active=lambda kind: self.active,
            retry_stream=self._retry_stream,
            recover_connection=self._recover_connection,
            base_delay=10.0,
            idle_delay=5.0,
            max_delay=60.0,
            connection_delay=5.0,
            sleep=self.sleep,
        )

    async def _retry_stream(self):
        self.stream_attempts += 1
        result = self.stream_results.pop(0) if self.stream_results else False
        if isinstance(result, Exception):
            raise result
        return result

    async def _recover_connection(self):
        self.connection_attempts += 1
        return self.connection_results.pop(0) if self.connection_results else False


class TestStreamBackoff(SchedulerTestCase):
    async def test_delay_doubles_and_caps(self):
        self.scheduler.schedule_retry()
        await settle()
        for _ in range(4):
            await self.sleep.fire()
        self.assertEqual(self.sleep.delays, [10.0, 20.0, 40.0, 60.0, 60.0])
        self.assertEqual(self.scheduler.failures, 4)
        self.assertTrue(self.scheduler.pending)

    async def test_success_keeps_backoff_until_reset(self):
        self.stream_results = [False, True]
        self.scheduler.schedule_retry()
        await settle()
        await self.sleep.fire()
        self.assertEqual(self.scheduler.delay, 20.0)
        await self.sleep.fire()
        self.assertEqual(self.stream_attempts, 2)
        self.assertFalse(self.scheduler.pending)
        self.assertIsNone(self.scheduler.kind)
        # Reconnected is not yet healthy: the chain carries on if it dies again
        self.assertEqual(self.scheduler.delay, 20.0)
        self.assertEqual(self.scheduler.failures, 1)

        self.scheduler.reset()
        self.assertEqual(self.scheduler.delay, 10.0)
        self.assertEqual(self.scheduler.failures, 0)

    async def test_record_failure_doubles_and_caps(self):
        delays = [self.scheduler.record_failure() for _ in range(4)]
        self.assertEqual(delays, [20.0, 40.0, 60.0, 60.0])
        self.assertEqual(self.scheduler.failures, 4)
        self.assertFalse(self.scheduler.pending)

    async def test_fast_retry_starts_at_idle_delay(self):
        delay = self.scheduler.schedule_retry(fast=True)
        await settle()
        self.assertEqual(delay, 5.0)
        self.assertEqual(self.sleep.pending(), [5.0])

    async def test_fast_retry_keeps_current_backoff(self):
        self.scheduler.schedule_retry()
        await settle()
        await self.sleep.fire()
        self.assertEqual(self.scheduler.schedule_retry(fast=True), 20.0)

    async def test_crashing_attempt_counts_as_failure(self):
        self.stream_results = [RuntimeError("boom")]
        self.scheduler.schedule_retry()
        await settle()
        await self.sleep.fire()
        self.assertEqual(self.scheduler.failures, 1)
        self.assertEqual(self.sleep.pending(), [20.0])


class TestSlot(SchedulerTestCase):
    async def test_cancel_is_synchronous(self):
        self.scheduler.schedule_retry()
        await settle()
        self.assertTrue(self.scheduler.cancel())
        self.assertFalse(self.scheduler.pending)
        await settle()
        self.assertEqual(self.sleep.pending(), [])
        self.assertEqual(self.stream_attempts, 0)

    async def test_cancel_without_pending_timer(self):
        self.assertFalse(self.scheduler.cancel())

    async def test_arming_replaces_pending_timer(self):
        self.scheduler.schedule_retry()
        await settle()
        self.scheduler.schedule_connection_recovery()
        await settle()
        self.assertEqual(self.scheduler.kind, RecoveryKind.CONNECTION)
        self.assertEqual(self.sleep.pending(), [5.0])

        await self.sleep.fire()
        self.assertEqual(self.stream_attempts, 0)
        self.assertEqual(self.connection_attempts, 1)

    async def test_connection_recovery_uses_fixed_delay(self):
        self.connection_results = [False, False, True]
        self.scheduler.schedule_connection_recovery()
        await settle()
        for _ in range(3):
            await self.sleep.fire()
        self.assertEqual(self.sleep.delays, [5.0, 5.0, 5.0])
        self.assertEqual(self.scheduler.delay, 10.0)
        self.assertFalse(self.scheduler.pending)

    async def test_stale_timer_does_nothing(self):
        self.scheduler.schedule_retry()
        await settle()
        self.active = False
        await self.sleep.fire()
        self.assertEqual(self.stream_attempts, 0)
        self.assertFalse(self.scheduler.pending)

    async def test_attempt_that_rearms_wins(self):
        async def hand_over():
            self.scheduler.schedule_connection_recovery()
            return False

        self.scheduler._retry_stream = hand_over
        self.scheduler.schedule_retry()
        await settle()
        await self.sleep.fire()
        self.assertEqual(self.scheduler.kind, RecoveryKind.CONNECTION)
        self.assertEqual(self.scheduler.failures, 0)
        self.assertEqual(self.sleep.pending(), [5.0])

    async def test_remaining_reports_time_left(self):
        self.assertIsNone(self.scheduler.remaining)
        self.scheduler.schedule_retry()
        self.assertLessEqual(self.scheduler.remaining, 10.0)
        self.assertGreater(self.scheduler.remaining, 9.0)


if __name__ == "__main__":
    unittest.main()
