# app/blockchain/errors.py
"""Error taxonomy for the vesting event pipeline."""


class VestingSyncError(Exception):
    """Base class for everything the sync pipeline raises."""


# --- Log Source ---
class TransportError(VestingSyncError):
    """RPC unreachable, rate-limited, or returned something unusable."""


# --- Decoder ---
class DecodeError(VestingSyncError):
    def __init__(self, message, block_number=None, transaction_hash=None):
        super().__init__(message)
        self.block_number = block_number
        self.transaction_hash = transaction_hash


class UnknownSignature(DecodeError):
    pass


class MalformedPayload(DecodeError):
    pass


# --- Persistence ---
class DuplicateKey(VestingSyncError):
    """The ledger already holds an entry for this (tx hash, event kind)."""

    def __init__(self, transaction_hash, event_type):
        super().__init__(f"{event_type} already recorded for {transaction_hash}")
        self.transaction_hash = transaction_hash
        self.event_type = event_type


class PersistenceUnavailable(VestingSyncError):
    pass


class CheckpointCorrupted(VestingSyncError):
    pass


# --- Reconciliation ---
class ConsistencyWarning(VestingSyncError):
    '''
    Recorded (never raised) when an event cannot be reconciled against the
    projection, e.g. a release for a beneficiary with no known schedule.
    '''

    def __init__(self, message, beneficiary):
        super().__init__(message)
        self.beneficiary = beneficiary
