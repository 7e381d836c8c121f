#! app/blockchain/events.py
from dataclasses import dataclass
from typing import Optional, Tuple, Union

# ---------------------------------------------------------------------
# Raw log records as the Log Source hands them over, and the three typed
# domain events the decoder turns them into. Everything here is immutable.
# ---------------------------------------------------------------------


@dataclass(frozen=True)
class RawLog:
    address: str
    topics: Tuple[bytes, ...]
    data: bytes
    block_number: int
    transaction_hash: str
    log_index: Optional[int] = None

    @property
    def sort_key(self):
        return (self.block_number, -1 if self.log_index is None else self.log_index)


@dataclass(frozen=True)
class WindowClosed:
    """Marker from a live subscription: every log up to `to_block` has been delivered."""
    to_block: int


@dataclass(frozen=True)
class Provenance:
    block_number: int
    transaction_hash: str
    log_index: Optional[int] = None


@dataclass(frozen=True)
class ScheduleCreated:
    beneficiary: str
    amount: int
    start: int
    cliff: int
    duration: int
    provenance: Provenance

    kind = "VestingScheduleCreated"

    @property
    def ledger_amount(self):
        return self.amount

    def payload(self):
        return {
            "start": str(self.start),
            "cliff": str(self.cliff),
            "duration": str(self.duration),
        }


@dataclass(frozen=True)
class TokensReleased:
    beneficiary: str
    amount: int  # incremental, not cumulative
    provenance: Provenance

    kind = "TokensReleased"

    @property
    def ledger_amount(self):
        return self.amount

    def payload(self):
        return {}


@dataclass(frozen=True)
class ScheduleRevoked:
    beneficiary: str
    refunded: int
    provenance: Provenance

    kind = "VestingRevoked"

    @property
    def ledger_amount(self):
        return self.refunded

    def payload(self):
        return {"refunded": str(self.refunded)}


DomainEvent = Union[ScheduleCreated, TokensReleased, ScheduleRevoked]
