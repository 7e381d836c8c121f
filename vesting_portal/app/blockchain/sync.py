#! app/blockchain/sync.py
import logging
from dataclasses import asdict, dataclass, fields, replace

from app.services.helpers import block_windows
from .decoder import EventDecoder
from .errors import DecodeError
from .reconcile import Outcome

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 10_000


@dataclass
class SyncStats:
    batches: int = 0
    applied: int = 0
    duplicates: int = 0
    orphans: int = 0
    skipped: int = 0    # logs that failed to decode
    warnings: int = 0

    def as_dict(self):
        return asdict(self)

    def restore(self, snapshot):
        for f in fields(self):
            setattr(self, f.name, getattr(snapshot, f.name))


class EventApplier:
    """Decode + apply, shared by the historical and live paths so both behave identically."""

    def __init__(self, reconciler, decoder=None, stats=None):
        self.reconciler = reconciler
        self.decoder = decoder or EventDecoder()
        self.stats = stats or SyncStats()

    def decode(self, raw):
        try:
            return self.decoder.decode(raw)
        except DecodeError as e:
            # One bad log must not block the whole backfill
            self.stats.skipped += 1
            logger.warning(f"⚠️  Failed to parse event at block {raw.block_number} "
                           f"(tx {raw.transaction_hash}): {e}")
            return None

    def apply(self, event):
        result = self.reconciler.apply(event)
        if result.outcome is Outcome.APPLIED:
            self.stats.applied += 1
        elif result.outcome is Outcome.DUPLICATE:
            self.stats.duplicates += 1
        else:
            self.stats.orphans += 1
        if result.warning is not None:
            self.stats.warnings += 1
        return result


class HistoricalSyncDriver:
    '''
    Walks (checkpoint, head] in fixed-size batches. A batch's events and its
    checkpoint advance commit together, so a crash replays at most the batch
    that was in flight.
    '''

    def __init__(self, source, repository, applier, batch_size=DEFAULT_BATCH_SIZE):
        if batch_size < 1:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        self.source = source
        self.repository = repository
        self.applier = applier
        self.batch_size = batch_size

    def run(self, start_block: int, to_block=None, cancel=None):
        """
        Sync from the persisted checkpoint (or `start_block` when there is none)
        up to `to_block`, defaulting to the chain head read once here.
        Returns the checkpoint reached.
        """
        checkpoint = self.repository.get_checkpoint()
        last_done = checkpoint if checkpoint is not None else start_block - 1
        latest = to_block if to_block is not None else self.source.latest_height()

        if last_done >= latest:
            logger.info(f"✅ Already up to date (checkpoint {last_done}, head {latest})")
            return last_done

        logger.info(f"📊 Fetching events from block {last_done + 1} to {latest}")
        for lo, hi in block_windows(last_done + 1, latest, self.batch_size):
            if cancel is not None and cancel.is_set():
                logger.info(f"🛑 Historical sync cancelled before block {lo}")
                break
            last_done = self.run_batch(lo, hi)

        return last_done

    def run_batch(self, from_block: int, to_block: int) -> int:
        raw_logs = self.source.fetch_range(from_block, to_block)

        # A rolled-back batch is replayed later, so its counts must not stick
        before = replace(self.applier.stats)
        try:
            events = [e for e in map(self.applier.decode, raw_logs) if e is not None]
            events.sort(key=lambda e: (e.provenance.block_number,
                                       e.provenance.log_index if e.provenance.log_index is not None else -1))

            with self.repository.writer_lock():
                for event in events:
                    self.applier.apply(event)
                checkpoint = self.repository.set_checkpoint(to_block)
        except Exception:
            self.applier.stats.restore(before)
            raise

        self.applier.stats.batches += 1
        logger.info(f"✅ Processed blocks {from_block} to {to_block} ({len(events)} events)")
        return checkpoint
