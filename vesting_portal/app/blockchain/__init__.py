from .decoder import EventDecoder
from .errors import (
    CheckpointCorrupted,
    ConsistencyWarning,
    DecodeError,
    DuplicateKey,
    MalformedPayload,
    PersistenceUnavailable,
    TransportError,
    UnknownSignature,
    VestingSyncError,
)
from .events import (
    DomainEvent,
    Provenance,
    RawLog,
    ScheduleCreated,
    ScheduleRevoked,
    TokensReleased,
    WindowClosed,
)
