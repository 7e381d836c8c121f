"""In-memory stand-ins for the chain, building logs the way the contract emits them."""
import itertools

from eth_abi import encode
from eth_utils import to_checksum_address

from app.blockchain.abi import EVENTS_BY_NAME, event_topic
from app.blockchain.errors import TransportError
from app.blockchain.events import RawLog, WindowClosed

CONTRACT = to_checksum_address("0x" + "c0" * 20)
ALICE = to_checksum_address("0x" + "a1" * 20)
BOB = to_checksum_address("0x" + "b0" * 20)

DAY = 24 * 60 * 60
T0 = 1_700_000_000

_tx_counter = itertools.count(1)


def tx_hash(n=None):
    n = next(_tx_counter) if n is None else n
    return "0x" + f"{n:064x}"


def _log(name, beneficiary, values, block, tx=None, log_index=0):
    event_abi = EVENTS_BY_NAME[name]
    data_types = [i["type"] for i in event_abi["inputs"] if not i["indexed"]]
    return RawLog(
        address=CONTRACT,
        topics=(event_topic(event_abi), encode(["address"], [beneficiary])),
        data=encode(data_types, values),
        block_number=block,
        transaction_hash=tx or tx_hash(),
        log_index=log_index,
    )


def created_log(beneficiary, amount, start, cliff, duration, block, tx=None, log_index=0):
    return _log("VestingScheduleCreated", beneficiary, [amount, start, cliff, duration], block, tx, log_index)


def released_log(beneficiary, amount, block, tx=None, log_index=0):
    return _log("TokensReleased", beneficiary, [amount], block, tx, log_index)


def revoked_log(beneficiary, refunded, block, tx=None, log_index=0):
    return _log("VestingRevoked", beneficiary, [refunded], block, tx, log_index)


def garbage_log(block, tx=None):
    return RawLog(
        address=CONTRACT,
        topics=(b"\xde\xad" * 16,),
        data=b"",
        block_number=block,
        transaction_hash=tx or tx_hash(),
        log_index=0,
    )


class FakeLogSource:
    """Serves a fixed set of logs; records every range it was asked for."""

    def __init__(self, logs=(), head=0, fail_ranges=()):
        self.contract_address = CONTRACT
        self.logs = list(logs)
        self.head = head
        self.fail_ranges = set(fail_ranges)
        self.fetched = []
        self.subscriptions = []
        self.script = []
        self.cancel_on_drain = None

    def latest_height(self):
        return self.head

    def fetch_range(self, from_block, to_block):
        if (from_block, to_block) in self.fail_ranges:
            raise TransportError(f"boom fetching {from_block}..{to_block}")
        self.fetched.append((from_block, to_block))
        return sorted(
            (l for l in self.logs if from_block <= l.block_number <= to_block),
            key=lambda l: l.sort_key,
        )

    def subscribe(self, from_block):
        sub = ScriptedSubscription(from_block, self.script, self.cancel_on_drain)
        self.subscriptions.append(sub)
        return sub


class ScriptedSubscription:
    '''
    Hands out pre-scripted items. Once the script runs dry it sets `cancel_on_drain`
    (if given) so the consuming loop exits the way a shutdown would.
    '''

    def __init__(self, from_block, items, cancel_on_drain=None):
        self.from_block = from_block
        self.items = list(items)
        self.cancel_on_drain = cancel_on_drain
        self.closed = False
        self.delivered = 0

    def get(self, timeout=None):
        if not self.items:
            if self.cancel_on_drain is not None:
                self.cancel_on_drain.set()
            return None
        self.delivered += 1
        return self.items.pop(0)

    def close(self):
        self.closed = True


def window(to_block):
    return WindowClosed(to_block)
