# app/tasks.py
import logging

from celery import shared_task
from django.conf import settings

from app.blockchain.client import ChainLogSource
from app.blockchain.errors import TransportError
from app.blockchain.listener import VestingEventListener

logger = logging.getLogger(__name__)


@shared_task(bind=True, max_retries=3)
def sync_vesting_events(self, from_block=None):
    '''
    One historical pass: checkpoint -> current head, then return.
    Safe to run on a schedule; the checkpoint row lock keeps it from
    interleaving writes with a running listener.
    '''
    start_block = settings.START_BLOCK if from_block is None else int(from_block)
    listener = VestingEventListener(ChainLogSource.from_settings())

    try:
        checkpoint = listener.historical.run(start_block)
    except TransportError as e:
        logger.error(f"❌ Historical sync failed: {e}")
        # Resuming from the checkpoint is always safe, so just go again later
        raise self.retry(exc=e, countdown=30)

    stats = listener.stats
    return (f"Synced to block {checkpoint}: {stats.applied} applied, "
            f"{stats.duplicates} duplicates, {stats.skipped} undecodable.")
