#! app/blockchain/listener.py
import logging
import threading

from django.conf import settings

from .client import ChainLogSource
from .decoder import EventDecoder
from .reconcile import ReconciliationEngine
from .repository import VestingRepository
from .sync import EventApplier, HistoricalSyncDriver
from .watcher import LiveWatchDriver

logger = logging.getLogger(__name__)


class VestingEventListener:
    """
    Historical sync to the chain head, then the live watch, on the calling thread.

    `ready` is set once the historical backfill is done, so readers can tell a
    still-filling projection from a current one.
    """

    def __init__(self, source, repository=None, decoder=None, batch_size=None, poll_timeout=1.0):
        self.source = source
        self.repository = repository or VestingRepository()
        self.reconciler = ReconciliationEngine(self.repository)
        self.applier = EventApplier(self.reconciler, decoder or EventDecoder())
        self.historical = HistoricalSyncDriver(
            source, self.repository, self.applier,
            batch_size=batch_size or settings.SYNC_BATCH_SIZE,
        )
        self.live = LiveWatchDriver(
            source, self.repository, self.applier, self.historical, poll_timeout=poll_timeout,
        )
        self.ready = threading.Event()

    @classmethod
    def from_settings(cls):
        return cls(ChainLogSource.from_settings())

    @property
    def is_ready(self):
        return self.ready.is_set()

    @property
    def stats(self):
        return self.applier.stats

    def start(self, from_block: int, cancel=None):
        """Runs until `cancel` is set or an error propagates."""
        cancel = cancel or threading.Event()

        # Surfaces a missing database or a corrupted checkpoint before any RPC call
        checkpoint = self.repository.get_checkpoint()
        logger.info(f"📜 Syncing historical events (checkpoint: {checkpoint}, start block: {from_block})...")

        self.historical.run(from_block, cancel=cancel)
        if cancel.is_set():
            logger.info("🛑 Cancelled during historical sync")
            return

        self.ready.set()
        logger.info(f"✅ Historical sync complete: {self.stats.as_dict()}")

        self.live.run(from_block, cancel)
