import threading

from django.test import TestCase

from app.blockchain.errors import TransportError
from app.blockchain.reconcile import ReconciliationEngine
from app.blockchain.repository import VestingRepository
from app.blockchain.sync import EventApplier, HistoricalSyncDriver
from app.blockchain.watcher import LiveWatchDriver
from app.models import VestingSchedule
from fakes import (
    ALICE,
    DAY,
    T0,
    FakeLogSource,
    created_log,
    garbage_log,
    released_log,
    revoked_log,
    window,
)


class LiveWatchDriverTest(TestCase):
    def setUp(self):
        self.repo = VestingRepository()
        self.cancel = threading.Event()
        self.source = FakeLogSource([created_log(ALICE, 1000, T0, T0, DAY, block=100)], head=399)
        self.source.cancel_on_drain = self.cancel

        self.applier = EventApplier(ReconciliationEngine(self.repo))
        self.historical = HistoricalSyncDriver(self.source, self.repo, self.applier, batch_size=100)
        self.historical.run(100)
        self.watcher = LiveWatchDriver(self.source, self.repo, self.applier, self.historical, poll_timeout=0)

    def released(self):
        return VestingSchedule.objects.get(beneficiary=ALICE).released_amount

    def test_applies_live_events_and_advances_checkpoint(self):
        self.source.script = [
            released_log(ALICE, 10, block=400),
            released_log(ALICE, 5, block=401),
            window(405),
        ]
        self.watcher.run(100, self.cancel)

        subscription = self.source.subscriptions[0]
        self.assertEqual(subscription.from_block, 400)
        self.assertTrue(subscription.closed)
        self.assertEqual(self.released(), 15)
        self.assertEqual(self.repo.get_checkpoint(), 405)

    def test_checkpoint_waits_for_block_to_complete(self):
        self.source.script = [
            released_log(ALICE, 10, block=400),
            released_log(ALICE, 5, block=401, log_index=0),
        ]
        self.watcher.run(100, self.cancel)

        # block 401 may still have logs in flight, so only 400 is settled
        self.assertEqual(self.repo.get_checkpoint(), 400)
        self.assertEqual(self.released(), 15)

    def test_catches_up_when_head_moved(self):
        self.source.logs.append(released_log(ALICE, 7, block=420))
        self.source.head = 450

        self.watcher.run(100, self.cancel)

        self.assertIn((400, 450), self.source.fetched)
        self.assertEqual(self.source.subscriptions[0].from_block, 451)
        self.assertEqual(self.released(), 7)
        self.assertEqual(self.repo.get_checkpoint(), 450)

    def test_subscription_error_ends_loop(self):
        self.source.script = [
            released_log(ALICE, 10, block=400),
            window(400),
            TransportError("socket closed"),
            released_log(ALICE, 99, block=401),
        ]
        with self.assertRaises(TransportError):
            self.watcher.run(100, self.cancel)

        self.assertTrue(self.source.subscriptions[0].closed)
        self.assertEqual(self.released(), 10)
        self.assertEqual(self.repo.get_checkpoint(), 400)

    def test_cancelled_before_subscribing(self):
        self.cancel.set()
        self.watcher.run(100, self.cancel)
        self.assertEqual(self.source.subscriptions, [])

    def test_cancel_stops_between_items(self):
        first = released_log(ALICE, 10, block=400)
        self.source.script = [first, released_log(ALICE, 20, block=401)]
        original = self.applier.apply

        def apply_then_cancel(event):
            result = original(event)
            self.cancel.set()
            return result

        self.applier.apply = apply_then_cancel
        self.watcher.run(100, self.cancel)

        self.assertEqual(self.released(), 10)
        self.assertEqual(self.source.subscriptions[0].delivered, 1)

    def test_redelivered_log_is_idempotent(self):
        release = released_log(ALICE, 10, block=400)
        self.source.script = [release, release, window(400)]
        self.watcher.run(100, self.cancel)

        self.assertEqual(self.released(), 10)
        self.assertEqual(self.applier.stats.duplicates, 1)

    def test_undecodable_live_log_is_skipped(self):
        self.source.script = [garbage_log(block=400), revoked_log(ALICE, 0, block=401), window(401)]
        with self.assertLogs("app.blockchain.sync", level="WARNING"):
            self.watcher.run(100, self.cancel)

        self.assertTrue(VestingSchedule.objects.get(beneficiary=ALICE).revoked)
        self.assertEqual(self.repo.get_checkpoint(), 401)
