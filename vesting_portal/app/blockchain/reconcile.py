#! app/blockchain/reconcile.py
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from django.db import transaction

from app.services.helpers import unix_to_datetime
from .errors import ConsistencyWarning, DuplicateKey
from .events import ScheduleCreated, ScheduleRevoked, TokensReleased

logger = logging.getLogger(__name__)


class Outcome(Enum):
    APPLIED = "applied"
    DUPLICATE = "duplicate"          # ledger already had it; nothing changed
    UNKNOWN_BENEFICIARY = "orphan"   # recorded in the ledger, projection untouched


@dataclass
class ApplyResult:
    outcome: Outcome
    warning: Optional[ConsistencyWarning] = None

    @property
    def changed(self):
        return self.outcome is Outcome.APPLIED


class ReconciliationEngine:
    """
    The single writer of the vesting projection.

    Every event is applied atomically with its ledger entry; the ledger's
    (tx hash, event kind) key makes redelivery a no-op.
    """

    def __init__(self, repository):
        self.repository = repository
        self._handlers = {
            ScheduleCreated: self._apply_created,
            TokensReleased: self._apply_released,
            ScheduleRevoked: self._apply_revoked,
        }

    def apply(self, event) -> ApplyResult:
        handler = self._handlers.get(type(event))
        if handler is None:
            raise TypeError(f"No reconciliation rule for {type(event).__name__}")

        try:
            with transaction.atomic():
                self.repository.append_ledger_entry(event)
                result = handler(event)
        except DuplicateKey:
            logger.debug(f"↩️ {event.kind} {event.provenance.transaction_hash} already applied")
            return ApplyResult(Outcome.DUPLICATE)

        if result.warning is not None:
            logger.warning(f"⚠️ {result.warning} (block {event.provenance.block_number}, "
                           f"tx {event.provenance.transaction_hash})")
        return result

    # --- LOGIC A: CREATION ---
    def _apply_created(self, event: ScheduleCreated) -> ApplyResult:
        static_fields = {
            "amount": str(event.amount),
            "start": unix_to_datetime(event.start),
            "cliff": unix_to_datetime(event.cliff),
            "duration": event.duration,
        }
        existing = self.repository.get_projection(event.beneficiary)
        if existing is None:
            self.repository.upsert_projection(
                event.beneficiary, released="0", revoked=False, revocable=True, **static_fields
            )
            return ApplyResult(Outcome.APPLIED)

        # Re-creation keeps released/revoked as they are
        self.repository.upsert_projection(event.beneficiary, **static_fields)
        warning = None
        if not existing.revoked and existing.released_amount > event.amount:
            warning = ConsistencyWarning(
                f"Schedule for {event.beneficiary} re-created with amount {event.amount} "
                f"below already released {existing.released}",
                event.beneficiary,
            )
        return ApplyResult(Outcome.APPLIED, warning)

    # --- LOGIC B: RELEASE ---
    def _apply_released(self, event: TokensReleased) -> ApplyResult:
        existing = self.repository.get_projection(event.beneficiary)
        if existing is None:
            return self._orphan(event)

        released = existing.released_amount + event.amount
        self.repository.upsert_projection(event.beneficiary, released=str(released))

        warning = None
        if not existing.revoked and released > existing.total_amount:
            warning = ConsistencyWarning(
                f"Released {released} exceeds total {existing.amount} for {event.beneficiary}",
                event.beneficiary,
            )
        return ApplyResult(Outcome.APPLIED, warning)

    # --- LOGIC C: REVOCATION ---
    def _apply_revoked(self, event: ScheduleRevoked) -> ApplyResult:
        existing = self.repository.get_projection(event.beneficiary)
        if existing is None:
            return self._orphan(event)

        if not existing.revoked:
            self.repository.upsert_projection(event.beneficiary, revoked=True)
        return ApplyResult(Outcome.APPLIED)

    def _orphan(self, event) -> ApplyResult:
        return ApplyResult(
            Outcome.UNKNOWN_BENEFICIARY,
            ConsistencyWarning(
                f"{event.kind} for {event.beneficiary} with no known schedule; projection not changed",
                event.beneficiary,
            ),
        )
