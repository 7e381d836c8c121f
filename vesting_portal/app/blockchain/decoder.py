#! app/blockchain/decoder.py
from eth_abi import decode as abi_decode
from eth_abi.exceptions import DecodingError
from eth_utils import to_checksum_address

from .abi import EVENTS_BY_TOPIC, split_inputs
from .errors import MalformedPayload, UnknownSignature
from .events import (
    Provenance,
    RawLog,
    ScheduleCreated,
    ScheduleRevoked,
    TokensReleased,
)

# 9999-12-31T23:59:59Z, the last instant a datetime column can hold
MAX_UNIX_SECONDS = 253402300799
MAX_DURATION_SECONDS = 2**63 - 1


class EventDecoder:
    """
    Turns a RawLog into one of ScheduleCreated / TokensReleased / ScheduleRevoked.

    Pure: no I/O, no state beyond the fixed topic -> ABI table.
    """

    def __init__(self, events_by_topic=None):
        self.events_by_topic = events_by_topic or EVENTS_BY_TOPIC

    def decode(self, raw: RawLog):
        if not raw.topics:
            raise UnknownSignature("log has no topics (anonymous event?)",
                                   raw.block_number, raw.transaction_hash)

        topic0 = bytes(raw.topics[0])
        event_abi = self.events_by_topic.get(topic0)
        if event_abi is None:
            raise UnknownSignature(f"unknown event signature 0x{topic0.hex()}",
                                   raw.block_number, raw.transaction_hash)

        name = event_abi["name"]
        indexed_types, data_types = split_inputs(event_abi)
        indexed_topics = raw.topics[1:]
        if len(indexed_topics) != len(indexed_types):
            raise MalformedPayload(
                f"{name}: expected {len(indexed_types)} indexed topics, got {len(indexed_topics)}",
                raw.block_number, raw.transaction_hash,
            )

        try:
            indexed = [
                abi_decode([t], bytes(topic))[0]
                for t, topic in zip(indexed_types, indexed_topics)
            ]
            values = abi_decode(data_types, bytes(raw.data))
        except (DecodingError, ValueError, TypeError) as e:
            raise MalformedPayload(f"{name}: {e}", raw.block_number, raw.transaction_hash) from e

        beneficiary = to_checksum_address(indexed[0])
        provenance = Provenance(
            block_number=raw.block_number,
            transaction_hash=raw.transaction_hash,
            log_index=raw.log_index,
        )

        if name == "VestingScheduleCreated":
            amount, start, cliff, duration = values
            for label, ts in (("start", start), ("cliff", cliff)):
                if ts > MAX_UNIX_SECONDS:
                    raise MalformedPayload(f"{name}: {label}={ts} is not a usable timestamp",
                                           raw.block_number, raw.transaction_hash)
            if duration > MAX_DURATION_SECONDS:
                raise MalformedPayload(f"{name}: duration={duration} out of range",
                                       raw.block_number, raw.transaction_hash)
            return ScheduleCreated(beneficiary, amount, start, cliff, duration, provenance)

        if name == "TokensReleased":
            (amount,) = values
            return TokensReleased(beneficiary, amount, provenance)

        if name == "VestingRevoked":
            (refunded,) = values
            return ScheduleRevoked(beneficiary, refunded, provenance)

        # The topic table knows an event this decoder has no type for
        raise UnknownSignature(f"no domain event for {name}", raw.block_number, raw.transaction_hash)
