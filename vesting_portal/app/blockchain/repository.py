#! app/blockchain/repository.py
import logging
from contextlib import contextmanager
from typing import Optional

from django.db import DatabaseError, transaction

from app.models import SyncState, VestingEvent, VestingSchedule
from .errors import CheckpointCorrupted, DuplicateKey, PersistenceUnavailable

logger = logging.getLogger(__name__)

CHECKPOINT_KEY = "vesting_listener"


class VestingRepository:
    """
    Narrow persistence interface the sync engine writes through.
    Owns nothing global: one instance per engine, keyed by checkpoint name.
    """

    def __init__(self, checkpoint_key=CHECKPOINT_KEY):
        self.checkpoint_key = checkpoint_key

    # ------------------------------------------------------------------
    # Checkpoint
    # ------------------------------------------------------------------
    def get_checkpoint(self) -> Optional[int]:
        try:
            state = SyncState.objects.filter(key=self.checkpoint_key).first()
        except DatabaseError as e:
            raise PersistenceUnavailable(f"Cannot read sync state: {e}") from e

        if state is None:
            return None
        return self._parse_checkpoint(state.last_synced_block)

    def _parse_checkpoint(self, raw) -> Optional[int]:
        if raw is None or raw.strip() == "":
            return None
        try:
            value = int(raw.strip())
        except ValueError as e:
            raise CheckpointCorrupted(
                f"Checkpoint {self.checkpoint_key!r} holds unparsable value {raw!r}"
            ) from e
        if value < 0:
            raise CheckpointCorrupted(f"Checkpoint {self.checkpoint_key!r} is negative: {value}")
        return value

    def set_checkpoint(self, block_number: int) -> int:
        """Moves the checkpoint forward only. Returns the value now stored."""
        state, _ = SyncState.objects.get_or_create(key=self.checkpoint_key)
        current = self._parse_checkpoint(state.last_synced_block)
        if current is not None and block_number <= current:
            if block_number < current:
                logger.debug(f"Checkpoint stays at {current}; ignoring move back to {block_number}")
            return current

        state.last_synced_block = str(block_number)
        state.save(update_fields=["last_synced_block", "updated_at"])
        return block_number

    @contextmanager
    def writer_lock(self):
        '''
        One atomic unit of projection writes. The checkpoint row is locked for
        the duration, so two engines pointed at the same database take turns.
        '''
        with transaction.atomic():
            SyncState.objects.get_or_create(key=self.checkpoint_key)
            SyncState.objects.select_for_update().get(key=self.checkpoint_key)
            yield

    # ------------------------------------------------------------------
    # Projection
    # ------------------------------------------------------------------
    def get_projection(self, beneficiary: str) -> Optional[VestingSchedule]:
        return VestingSchedule.objects.filter(beneficiary=beneficiary).first()

    def upsert_projection(self, beneficiary: str, **fields) -> VestingSchedule:
        schedule, _ = VestingSchedule.objects.update_or_create(
            beneficiary=beneficiary,
            defaults=fields,
        )
        return schedule

    # ------------------------------------------------------------------
    # Ledger
    # ------------------------------------------------------------------
    def append_ledger_entry(self, event) -> VestingEvent:
        entry, created = VestingEvent.objects.get_or_create(
            transaction_hash=event.provenance.transaction_hash,
            event_type=event.kind,
            defaults={
                "beneficiary": event.beneficiary,
                "amount": str(event.ledger_amount),
                "block_number": event.provenance.block_number,
                "log_index": event.provenance.log_index,
                "data": event.payload(),
            },
        )
        if not created:
            raise DuplicateKey(entry.transaction_hash, entry.event_type)
        return entry
