#! app/blockchain/watcher.py
import logging

from .errors import TransportError
from .events import RawLog, WindowClosed

logger = logging.getLogger(__name__)


class LiveWatchDriver:
    '''
    Applies logs from the live subscription for the rest of the process lifetime.

    Cancellation is checked between items, never during an apply. The
    checkpoint moves to a block once every log of that block has been applied:
    when a later block shows up, or when the subscription closes a window.
    '''

    def __init__(self, source, repository, applier, historical, poll_timeout=1.0):
        self.source = source
        self.repository = repository
        self.applier = applier
        self.historical = historical
        self.poll_timeout = poll_timeout

    def run(self, start_block: int, cancel):
        head = self.source.latest_height()
        checkpoint = self.repository.get_checkpoint()
        last_done = checkpoint if checkpoint is not None else start_block - 1

        if head > last_done:
            # The head moved while historical sync ran; close that gap first
            logger.info(f"⏩ Catching up blocks {last_done + 1} to {head} before subscribing")
            self.historical.run(start_block, to_block=head, cancel=cancel)
            last_done = head

        if cancel.is_set():
            return

        subscription = self.source.subscribe(last_done + 1)
        logger.info("👂 Listening for new events...")
        try:
            self._consume(subscription, cancel)
        finally:
            subscription.close()
        logger.info("🛑 Stopping event processor")

    def _consume(self, subscription, cancel):
        pending_block = None
        while not cancel.is_set():
            item = subscription.get(timeout=self.poll_timeout)
            if item is None:
                continue

            if isinstance(item, TransportError):
                raise item

            if isinstance(item, WindowClosed):
                self._advance(item.to_block)
                pending_block = None
                continue

            if not isinstance(item, RawLog):
                raise TypeError(f"Unexpected subscription item {item!r}")

            if pending_block is not None and item.block_number > pending_block:
                self._advance(pending_block)
            pending_block = item.block_number

            event = self.applier.decode(item)
            if event is None:
                continue
            with self.repository.writer_lock():
                result = self.applier.apply(event)
            if result.changed:
                logger.info(f"✅ Processed {event.kind} event for {event.beneficiary}")

    def _advance(self, block_number):
        with self.repository.writer_lock():
            self.repository.set_checkpoint(block_number)
