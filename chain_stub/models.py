"""In-process ERC-20 tables to simulate confirmed on-chain state for local runs and tests"""

import uuid
from django.db import models

# uint256 fits in 78 decimal digits
UINT256_DIGITS = 78


class ChainStubBalance(models.Model):
	"""
	Balance of one address on one token contract, in base units
	"""
	id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
	contract = models.CharField(max_length=42)
	address = models.CharField(max_length=42)
	balance_units = models.DecimalField(max_digits=UINT256_DIGITS, decimal_places=0, default=0)

	class Meta:
		unique_together = (("contract", "address"),)


class ChainStubAllowance(models.Model):
	"""
	ERC-20 allowance(owner, spender) on one contract
	"""
	id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
	contract = models.CharField(max_length=42)
	owner = models.CharField(max_length=42)
	spender = models.CharField(max_length=42)
	amount_units = models.DecimalField(max_digits=UINT256_DIGITS, decimal_places=0, default=0)

	class Meta:
		unique_together = (("contract", "owner", "spender"),)


class ChainStubTx(models.Model):
	"""
	Append-only log of confirmed write calls, one row per tx hash
	"""
	id = models.BigAutoField(primary_key=True)
	tx_hash = models.CharField(max_length=66, unique=True)
	contract = models.CharField(max_length=42)
	method = models.CharField(max_length=20) # 'transferFrom' | 'mint' | 'faucet' | 'approve'
	sender = models.CharField(max_length=42, blank=True, default="")
	recipient = models.CharField(max_length=42)
	amount_units = models.DecimalField(max_digits=UINT256_DIGITS, decimal_places=0)
	created_at = models.DateTimeField(auto_now_add=True)
