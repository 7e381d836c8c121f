from django.db import models


class VestingSchedule(models.Model):
    # 🔒 NATURAL KEY
    beneficiary = models.CharField(max_length=42, unique=True)

    # STATIC TERMS (overwritten by a repeated ScheduleCreated)
    start = models.DateTimeField()
    cliff = models.DateTimeField()
    duration = models.BigIntegerField()  # seconds
    # uint256 values are kept as decimal strings so nothing is lost to float coercion
    amount = models.CharField(max_length=78, default="0")

    # PROGRESS (never reset by a repeated ScheduleCreated)
    released = models.CharField(max_length=78, default="0")
    revocable = models.BooleanField(default=True)
    revoked = models.BooleanField(default=False)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "vesting_schedules"

    @property
    def total_amount(self) -> int:
        return int(self.amount)

    @property
    def released_amount(self) -> int:
        return int(self.released)

    @property
    def remaining_amount(self) -> int:
        """Chain-reported total minus what has been released so far."""
        return max(self.total_amount - self.released_amount, 0)

    def __str__(self):
        state = "revoked" if self.revoked else "active"
        return f"{self.beneficiary} — {self.released}/{self.amount} ({state})"


class VestingEvent(models.Model):
    '''
    Append-only ledger of every decoded contract event. A row is written in the
    same transaction as the projection change it caused, so its presence means
    "already applied".
    '''
    SCHEDULE_CREATED = "VestingScheduleCreated"
    TOKENS_RELEASED = "TokensReleased"
    SCHEDULE_REVOKED = "VestingRevoked"
    EVENT_TYPES = [
        (SCHEDULE_CREATED, "Schedule created"),
        (TOKENS_RELEASED, "Tokens released"),
        (SCHEDULE_REVOKED, "Schedule revoked"),
    ]

    event_type = models.CharField(max_length=32, choices=EVENT_TYPES, db_index=True)
    beneficiary = models.CharField(max_length=42, db_index=True)
    amount = models.CharField(max_length=78)
    block_number = models.PositiveBigIntegerField(db_index=True)
    transaction_hash = models.CharField(max_length=66)
    log_index = models.PositiveIntegerField(null=True, blank=True)
    data = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "vesting_events"
        ordering = ["block_number", "log_index"]
        constraints = [
            models.UniqueConstraint(
                fields=["transaction_hash", "event_type"],
                name="unique_event_per_tx",
            ),
        ]

    def __str__(self):
        return f"{self.event_type} {self.beneficiary} @ {self.block_number}"


class SyncState(models.Model):
    '''
    The SyncState tells the listener where to resume: the last block whose events
    were all fetched and applied. Stored as text so a hand-edited or truncated
    value surfaces as corruption instead of being coerced.
    '''
    key = models.CharField(max_length=50, unique=True)
    last_synced_block = models.CharField(max_length=32, blank=True, default="")
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.key}: {self.last_synced_block or '-'}"
