# app/management/commands/sync_chain.py
from django.core.management.base import BaseCommand


class Command(BaseCommand):
    help = "Run one historical sync pass of TokenVesting events up to the current head."

    def add_arguments(self, parser):
        parser.add_argument('--from-block', type=int, default=None,
                            help='Start block when no checkpoint is stored (default: START_BLOCK)')

    def handle(self, *args, **options):
        from app.tasks import sync_vesting_events

        self.stdout.write("Starting manual sync (Blocking)...")

        # .apply() runs it locally in this process immediately
        # No broker/RabbitMQ/Redis needed!
        result = sync_vesting_events.apply(kwargs={"from_block": options["from_block"]})

        if result.failed():
            self.stdout.write(self.style.ERROR(f"Sync failed: {result.result}"))
            return
        self.stdout.write(self.style.SUCCESS(f"Done! Status: {result.result}"))
