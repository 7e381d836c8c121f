# run: python manage.py run_vesting_listener [--from-block N]
import logging
import signal
import threading

from django.conf import settings
from django.core.management.base import BaseCommand, CommandError
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from app.blockchain.errors import CheckpointCorrupted, PersistenceUnavailable, TransportError
from app.blockchain.listener import VestingEventListener

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = "Sync TokenVesting history, then follow new events until interrupted."

    def add_arguments(self, parser):
        parser.add_argument('--from-block', type=int, default=None,
                            help='Start block when no checkpoint is stored (default: START_BLOCK)')
        parser.add_argument('--max-restarts', type=int, default=None,
                            help='Engine restarts allowed after RPC failures (default: LISTENER_MAX_RESTARTS)')

    def handle(self, *args, **options):
        from_block = settings.START_BLOCK if options['from_block'] is None else options['from_block']
        max_restarts = settings.LISTENER_MAX_RESTARTS if options['max_restarts'] is None else options['max_restarts']

        cancel = threading.Event()

        def _stop(signum, frame):
            self.stdout.write(self.style.WARNING("🛑 Shutting down listener..."))
            cancel.set()

        previous = {sig: signal.signal(sig, _stop) for sig in (signal.SIGINT, signal.SIGTERM)}

        def _cancelled(retry_state):
            return cancel.is_set()

        # A restart re-runs historical sync from the checkpoint, which covers whatever the dead subscription missed
        @retry(
            retry=retry_if_exception_type(TransportError),
            stop=stop_after_attempt(max_restarts + 1) | _cancelled,
            wait=wait_exponential(multiplier=1, max=settings.LISTENER_BACKOFF_MAX),
            sleep=cancel.wait,
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        def run_engine():
            listener = VestingEventListener.from_settings()
            listener.start(from_block, cancel)

        self.stdout.write(f"🚀 Starting vesting listener from block {from_block}...")
        try:
            run_engine()
        except (CheckpointCorrupted, PersistenceUnavailable) as e:
            raise CommandError(f"❌ Fatal: {e}") from e
        except TransportError as e:
            raise CommandError(f"❌ Giving up after {max_restarts} restarts: {e}") from e
        finally:
            for sig, handler in previous.items():
                signal.signal(sig, handler)

        self.stdout.write(self.style.SUCCESS("✅ Listener stopped"))
