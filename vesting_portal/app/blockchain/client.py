import logging
import queue
import threading

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from hexbytes import HexBytes
from requests.exceptions import RequestException
from web3 import Web3
from web3.exceptions import Web3Exception
from web3.middleware import ExtraDataToPOAMiddleware

from app.services.helpers import block_windows, normalize_address, to_hex_str
from .errors import TransportError
from .events import RawLog, WindowClosed

logger = logging.getLogger(__name__)

# Anything the provider stack can throw at us for a failed call
TRANSPORT_ERRORS = (Web3Exception, RequestException, OSError, ValueError, TimeoutError)


def get_web3(rpc_url=None, timeout=None, poa=None):
    rpc_url = rpc_url or settings.ETHEREUM_RPC
    timeout = timeout if timeout is not None else settings.RPC_TIMEOUT
    poa = settings.POA_CHAIN if poa is None else poa

    w3 = Web3(Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": timeout}))
    if poa:
        w3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)
    return w3


def normalize_log(log) -> RawLog:
    """web3 AttributeDict -> RawLog. A missing field means the RPC answer is unusable."""
    try:
        log_index = log.get("logIndex")
        return RawLog(
            address=normalize_address(log["address"]),
            topics=tuple(bytes(HexBytes(t)) for t in log["topics"]),
            data=bytes(HexBytes(log["data"])),
            block_number=int(log["blockNumber"]),
            transaction_hash=to_hex_str(log["transactionHash"]),
            log_index=int(log_index) if log_index is not None else None,
        )
    except (KeyError, TypeError, ValueError) as e:
        raise TransportError(f"Malformed log in RPC response: {e}") from e


class ChainLogSource:
    """
    Log Source over a JSON-RPC endpoint, scoped to one contract address.
    No retries here: a failed call surfaces as TransportError.
    """

    def __init__(self, w3, contract_address, poll_interval=None, max_window=None):
        self.w3 = w3
        self.contract_address = normalize_address(contract_address)
        self.poll_interval = poll_interval if poll_interval is not None else settings.LIVE_POLL_INTERVAL
        self.max_window = max_window or settings.SYNC_BATCH_SIZE

    @classmethod
    def from_settings(cls):
        address = settings.VESTING_CONTRACT_ADDRESS
        if not address:
            raise ImproperlyConfigured("VESTING_CONTRACT_ADDRESS is not set.")
        source = cls(get_web3(), address)
        source.verify_chain(settings.CHAIN_ID)
        logger.info(f"✅ Log source ready for {address} via {settings.ETHEREUM_RPC}")
        return source

    def verify_chain(self, expected_chain_id):
        try:
            chain_id = int(self.w3.eth.chain_id)
        except TRANSPORT_ERRORS as e:
            raise TransportError(f"Failed to get chain ID: {e}") from e
        if chain_id != expected_chain_id:
            raise ImproperlyConfigured(
                f"RPC serves chain {chain_id}, but CHAIN_ID is {expected_chain_id}"
            )
        logger.info(f"✅ Connected to Ethereum network (Chain ID: {chain_id})")
        return chain_id

    def latest_height(self) -> int:
        try:
            return int(self.w3.eth.block_number)
        except TRANSPORT_ERRORS as e:
            raise TransportError(f"Failed to get latest block: {e}") from e

    def fetch_range(self, from_block: int, to_block: int):
        """Inclusive [from_block, to_block], sorted by (block, log index)."""
        try:
            logs = self.w3.eth.get_logs({
                "fromBlock": from_block,
                "toBlock": to_block,
                "address": self.contract_address,
            })
        except TRANSPORT_ERRORS as e:
            raise TransportError(f"Failed to fetch logs {from_block}..{to_block}: {e}") from e

        return sorted((normalize_log(log) for log in logs), key=lambda r: r.sort_key)

    def subscribe(self, from_block: int):
        subscription = LogSubscription(self, from_block, self.poll_interval, self.max_window)
        subscription.start()
        return subscription


class LogSubscription:
    '''
    Live feed of RawLogs from `from_block` onward, produced by a polling thread.

    Items arrive on one queue in chain order: RawLog records, a WindowClosed
    marker after each polled range, and finally the TransportError that ended
    the feed, if any. The queue is unbounded so a slow consumer never makes
    the poller drop logs.
    '''

    def __init__(self, source, from_block, poll_interval=2.0, max_window=10_000):
        self.source = source
        self.cursor = from_block
        self.poll_interval = poll_interval
        self.max_window = max_window
        self.error = None
        self._queue = queue.Queue()
        self._stop = threading.Event()
        self._thread = threading.Thread(
            target=self._run, name="vesting-log-subscription", daemon=True
        )

    def start(self):
        logger.info(f"🔍 Watching for events from block {self.cursor}")
        self._thread.start()

    def _run(self):
        while not self._stop.is_set():
            try:
                self._poll_once()
            except TransportError as e:
                logger.error(f"❌ Event subscription error: {e}")
                self._fail(e)
                return
            except Exception as e:
                # The consumer only learns the feed is dead from the queue
                logger.exception(f"❌ Event poller crashed: {e}")
                error = TransportError(f"Event poller crashed: {e!r}")
                error.__cause__ = e
                self._fail(error)
                return
            self._stop.wait(self.poll_interval)

    def _fail(self, error):
        self.error = error
        self._queue.put(error)

    def _poll_once(self):
        head = self.source.latest_height()
        for lo, hi in block_windows(self.cursor, head, self.max_window):
            if self._stop.is_set():
                return
            for raw in self.source.fetch_range(lo, hi):
                self._queue.put(raw)
            self._queue.put(WindowClosed(hi))
            self.cursor = hi + 1

    def get(self, timeout=None):
        """Next item, or None if nothing arrived within `timeout`."""
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def close(self):
        self._stop.set()
        if self._thread.is_alive() and self._thread is not threading.current_thread():
            self._thread.join(timeout=self.poll_interval + 5)

    @property
    def closed(self):
        return self._stop.is_set()
