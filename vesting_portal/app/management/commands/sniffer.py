import json

from django.core.management.base import BaseCommand

from app.blockchain.client import ChainLogSource
from app.blockchain.decoder import EventDecoder
from app.blockchain.errors import DecodeError, TransportError
from app.services.helpers import BigIntEncoder


class Command(BaseCommand):
    help = "Dumps raw vesting contract logs for given blocks and shows how each one decodes."

    def add_arguments(self, parser):
        parser.add_argument('--blocks', type=int, nargs='+', required=True)

    def handle(self, *args, **options):
        source = ChainLogSource.from_settings()
        decoder = EventDecoder()

        self.stdout.write(f"Sniffing logs at address {source.contract_address}...")

        for b in options['blocks']:
            try:
                logs = source.fetch_range(b, b)
            except TransportError as e:
                self.stdout.write(self.style.ERROR(f"Block {b}: {e}"))
                continue

            if not logs:
                self.stdout.write(f"No logs found in block {b}")
                continue

            for i, log in enumerate(logs):
                self.stdout.write(f"\n--- LOG {i} AT BLOCK {b} ---")
                self.stdout.write(f"TX HASH: {log.transaction_hash}")
                if log.topics:
                    self.stdout.write(self.style.SUCCESS(f"TOPIC0 (SIGNATURE): 0x{log.topics[0].hex()}"))
                for idx, topic in enumerate(log.topics[1:]):
                    self.stdout.write(f"TOPIC{idx+1} (Indexed Param): 0x{topic.hex()}")
                self.stdout.write(f"DATA (Unindexed Params): 0x{log.data.hex()}")

                try:
                    event = decoder.decode(log)
                except DecodeError as e:
                    self.stdout.write(self.style.WARNING(f"UNDECODABLE: {e}"))
                    continue

                fields = {"beneficiary": event.beneficiary, "amount": event.ledger_amount, **event.payload()}
                self.stdout.write(self.style.SUCCESS(
                    f"{event.kind}: {json.dumps(fields, cls=BigIntEncoder)}"
                ))
