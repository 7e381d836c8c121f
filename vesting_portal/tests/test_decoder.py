import dataclasses

import pytest

from app.blockchain.abi import EVENTS_BY_NAME, event_signature, event_topic
from app.blockchain.decoder import MAX_UNIX_SECONDS, EventDecoder
from app.blockchain.errors import MalformedPayload, UnknownSignature
from app.blockchain.events import ScheduleCreated, ScheduleRevoked, TokensReleased
from fakes import ALICE, DAY, T0, created_log, garbage_log, released_log, revoked_log


@pytest.fixture
def decoder():
    return EventDecoder()


def test_signatures_match_contract_abi():
    assert event_signature(EVENTS_BY_NAME["VestingScheduleCreated"]) == \
        "VestingScheduleCreated(address,uint256,uint256,uint256,uint256)"
    assert event_signature(EVENTS_BY_NAME["TokensReleased"]) == "TokensReleased(address,uint256)"
    assert event_signature(EVENTS_BY_NAME["VestingRevoked"]) == "VestingRevoked(address,uint256)"
    # keccak("Transfer(address,address,uint256)") sanity check of the hashing itself
    transfer = {"name": "Transfer", "inputs": [{"type": "address"}, {"type": "address"}, {"type": "uint256"}]}
    assert event_topic(transfer).hex() == "ddf252ad1be2c89b69c2b068fc378daa952ba7f163c4a11628f55a4df523b3ef"


def test_decode_schedule_created(decoder):
    amount = 1000 * 10**18
    raw = created_log(ALICE, amount, T0, T0 + 30 * DAY, 365 * DAY, block=100, log_index=3)

    event = decoder.decode(raw)

    assert isinstance(event, ScheduleCreated)
    assert event.beneficiary == ALICE
    assert event.amount == amount
    assert (event.start, event.cliff, event.duration) == (T0, T0 + 30 * DAY, 365 * DAY)
    assert event.provenance.block_number == 100
    assert event.provenance.transaction_hash == raw.transaction_hash
    assert event.provenance.log_index == 3
    assert event.kind == "VestingScheduleCreated"


def test_decode_tokens_released(decoder):
    event = decoder.decode(released_log(ALICE, 50, block=200))
    assert isinstance(event, TokensReleased)
    assert (event.beneficiary, event.amount) == (ALICE, 50)


def test_decode_schedule_revoked(decoder):
    event = decoder.decode(revoked_log(ALICE, 900, block=300))
    assert isinstance(event, ScheduleRevoked)
    assert (event.beneficiary, event.refunded) == (ALICE, 900)
    assert event.payload() == {"refunded": "900"}


def test_events_are_immutable(decoder):
    event = decoder.decode(released_log(ALICE, 50, block=200))
    with pytest.raises(dataclasses.FrozenInstanceError):
        event.amount = 51


def test_unknown_signature(decoder):
    with pytest.raises(UnknownSignature) as exc:
        decoder.decode(garbage_log(block=7))
    assert exc.value.block_number == 7


def test_log_without_topics_is_unknown(decoder):
    raw = dataclasses.replace(released_log(ALICE, 1, block=1), topics=())
    with pytest.raises(UnknownSignature):
        decoder.decode(raw)


def test_missing_indexed_topic_is_malformed(decoder):
    raw = released_log(ALICE, 1, block=1)
    raw = dataclasses.replace(raw, topics=raw.topics[:1])
    with pytest.raises(MalformedPayload):
        decoder.decode(raw)


def test_truncated_data_is_malformed(decoder):
    raw = created_log(ALICE, 1000, T0, T0, DAY, block=1)
    raw = dataclasses.replace(raw, data=raw.data[:40])
    with pytest.raises(MalformedPayload):
        decoder.decode(raw)


def test_out_of_range_timestamp_is_malformed(decoder):
    raw = created_log(ALICE, 1000, MAX_UNIX_SECONDS + 1, T0, DAY, block=1)
    with pytest.raises(MalformedPayload):
        decoder.decode(raw)
