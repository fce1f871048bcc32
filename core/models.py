"""Database models for the token sale.


Tables:
- TransactionType
- TransactionStatus
- Transaction: one row per purchase attempt; append-only, never deleted
"""

import uuid
from django.db import models
from django.utils import timezone

from .constants import as_number, plain
from .exceptions import InvalidStateTransition


class TransactionType(models.TextChoices):
	BUY = "BUY", "Buy"
	APPROVE = "APPROVE", "Approve"


class TransactionStatus(models.TextChoices):
	PENDING = "PENDING", "Pending"
	PAID = "PAID", "Paid (USDT received, not minted)"
	SUCCESS = "SUCCESS", "Success"
	FAILED = "FAILED", "Failed"


# PENDING -> PAID -> SUCCESS, and either non-terminal state -> FAILED
ALLOWED_TRANSITIONS = {
	TransactionStatus.PENDING: {TransactionStatus.PAID, TransactionStatus.FAILED},
	TransactionStatus.PAID: {TransactionStatus.SUCCESS, TransactionStatus.FAILED},
	TransactionStatus.SUCCESS: set(),
	TransactionStatus.FAILED: set(),
}


def pending_tx_hash(request_id) -> str:
	return f"pending-{request_id}"


class Transaction(models.Model):
	"""
	Ledger record of a token purchase.

	tx_hash holds pending-<request_id> until the mint confirms, so it stays unique
	for pending rows too. payment_tx_hash is set once the USDT transferFrom confirms:
	a FAILED row with a payment hash is a buyer who paid and was not minted.
	"""
	id = models.BigAutoField(primary_key=True)
	request_id = models.UUIDField(default=uuid.uuid4, unique=True, editable=False)
	buyer_address = models.CharField(max_length=42, db_index=True)
	type = models.CharField(max_length=10, choices=TransactionType.choices, default=TransactionType.BUY)
	amount = models.DecimalField(max_digits=38, decimal_places=18) # whole tokens minted
	status = models.CharField(max_length=10, choices=TransactionStatus.choices, default=TransactionStatus.PENDING)
	tx_hash = models.CharField(max_length=100, unique=True)
	payment_tx_hash = models.CharField(max_length=100, blank=True, default="")
	error = models.TextField(blank=True, default="")
	timestamp = models.DateTimeField(default=timezone.now, editable=False)
	updated_at = models.DateTimeField(auto_now=True)
	token_price = models.DecimalField(max_digits=18, decimal_places=6)
	usdt_amount = models.DecimalField(max_digits=24, decimal_places=6)

	class Meta:
		indexes = [
			models.Index(fields=["-timestamp"], name="tx_timestamp_idx"),
			models.Index(fields=["buyer_address", "-timestamp"], name="tx_buyer_timestamp_idx"),
		]

	def save(self, *args, **kwargs):
		if not self.tx_hash:
			self.tx_hash = pending_tx_hash(self.request_id)
		super().save(*args, **kwargs)

	def transition(self, status: str, **fields):
		"""
		Move to the next state and persist only the changed columns.
		"""
		if status not in ALLOWED_TRANSITIONS[TransactionStatus(self.status)]:
			raise InvalidStateTransition(f"{self.status} -> {status} not allowed for tx {self.request_id}")
		self.status = status
		for name, value in fields.items():
			setattr(self, name, value)
		self.save(update_fields=["status", "updated_at", *fields])

	@property
	def is_paid_not_minted(self) -> bool:
		return bool(self.payment_tx_hash) and self.status != TransactionStatus.SUCCESS

	def as_api(self) -> dict:
		return {
			"id": self.id,
			"requestId": str(self.request_id),
			"buyerAddress": self.buyer_address,
			"type": self.type,
			"amount": plain(self.amount),
			"status": self.status,
			"txHash": self.tx_hash,
			"paymentTxHash": self.payment_tx_hash,
			"timestamp": self.timestamp.isoformat(),
			"tokenPrice": as_number(self.token_price),
			"usdtAmount": plain(self.usdt_amount),
		}
