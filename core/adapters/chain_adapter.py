"""Adapters over the two token contracts.

ChainAdapter submits signed transactions through web3.py and blocks until the
receipt is mined. StubChainAdapter mutates the chain_stub tables instead, with the
same ERC-20 rules, so the purchase flow runs locally and in tests.

Both speak integer base units and return the confirmed tx hash for writes.
"""

import logging
import secrets

from django.db import transaction
from web3 import Web3
from web3.exceptions import ContractLogicError, Web3Exception

from chain_stub.models import ChainStubAllowance, ChainStubBalance, ChainStubTx
from core.exceptions import ChainCallReverted, InsufficientGas

logger = logging.getLogger(__name__)


USDT_ABI = [
	{
		"name": "balanceOf", "type": "function", "stateMutability": "view",
		"inputs": [{"name": "owner", "type": "address"}],
		"outputs": [{"name": "", "type": "uint256"}],
	},
	{
		"name": "allowance", "type": "function", "stateMutability": "view",
		"inputs": [{"name": "owner", "type": "address"}, {"name": "spender", "type": "address"}],
		"outputs": [{"name": "", "type": "uint256"}],
	},
	{
		"name": "transferFrom", "type": "function", "stateMutability": "nonpayable",
		"inputs": [
			{"name": "from", "type": "address"},
			{"name": "to", "type": "address"},
			{"name": "value", "type": "uint256"},
		],
		"outputs": [{"name": "", "type": "bool"}],
	},
]

NATIVE_TOKEN_ABI = [
	{
		"name": "mint", "type": "function", "stateMutability": "nonpayable",
		"inputs": [{"name": "to", "type": "address"}, {"name": "amount", "type": "uint256"}],
		"outputs": [{"name": "", "type": "bool"}],
	},
]


def revert_reason(exc: Exception) -> str:
	reason = getattr(exc, "message", None) or str(exc)
	prefix = "execution reverted: "
	if reason.startswith(prefix):
		reason = reason[len(prefix):]
	return reason or "unknown revert"


def is_insufficient_funds(exc: Exception) -> bool:
	return "insufficient funds" in str(exc).lower()


class ChainAdapter:
	"""
	web3.py client for the USDT and native token contracts, signing as the admin key.
	"""

	def __init__(self, rpc_url: str, usdt_address: str, token_address: str, private_key: str,
				 receipt_timeout: int = 120, w3: Web3 | None = None):
		self.w3 = w3 or Web3(Web3.HTTPProvider(rpc_url))
		self.account = self.w3.eth.account.from_key(private_key)
		self.usdt = self.w3.eth.contract(address=Web3.to_checksum_address(usdt_address), abi=USDT_ABI)
		self.token = self.w3.eth.contract(address=Web3.to_checksum_address(token_address), abi=NATIVE_TOKEN_ABI)
		self.receipt_timeout = receipt_timeout

	def balance_of(self, address: str) -> int:
		return int(self.usdt.functions.balanceOf(Web3.to_checksum_address(address)).call())

	def allowance(self, owner: str, spender: str) -> int:
		return int(self.usdt.functions.allowance(
			Web3.to_checksum_address(owner), Web3.to_checksum_address(spender)
		).call())

	def transfer_from(self, owner: str, recipient: str, amount_units: int) -> str:
		fn = self.usdt.functions.transferFrom(
			Web3.to_checksum_address(owner), Web3.to_checksum_address(recipient), int(amount_units)
		)
		return self._transact(fn, "transferFrom")

	def mint(self, recipient: str, amount_units: int) -> str:
		fn = self.token.functions.mint(Web3.to_checksum_address(recipient), int(amount_units))
		return self._transact(fn, "mint")

	def _transact(self, fn, label: str) -> str:
		"""
		Build, sign, send and wait. Gas is estimated by build_transaction, so a call
		that would revert fails here with ContractLogicError before anything is sent.
		"""
		sender = self.account.address
		try:
			tx = fn.build_transaction({
				"from": sender,
				"nonce": self.w3.eth.get_transaction_count(sender, "pending"),
			})
			signed = self.account.sign_transaction(tx)
			tx_hash = self.w3.eth.send_raw_transaction(signed.raw_transaction)
			logger.info("%s submitted: %s", label, Web3.to_hex(tx_hash))
			receipt = self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=self.receipt_timeout)
		except ContractLogicError as e:
			raise ChainCallReverted(revert_reason(e)) from e
		except (Web3Exception, ValueError) as e:
			if is_insufficient_funds(e):
				raise InsufficientGas() from e
			raise

		tx_hex = Web3.to_hex(tx_hash)
		if receipt["status"] != 1:
			raise ChainCallReverted(f"{label} reverted in {tx_hex}")
		logger.info("%s confirmed in block %s: %s", label, receipt["blockNumber"], tx_hex)
		return tx_hex


class StubChainAdapter:
	"""
	Same surface as ChainAdapter backed by chain_stub rows; every write is confirmed at once.
	"""

	def __init__(self, usdt_address: str, token_address: str, admin_address: str):
		self.usdt_contract = usdt_address.lower()
		self.token_contract = token_address.lower()
		self.admin_address = admin_address.lower()

	def balance_of(self, address: str, contract: str | None = None) -> int:
		row = ChainStubBalance.objects.filter(
			contract=contract or self.usdt_contract, address=address.lower()
		).first()
		return int(row.balance_units) if row else 0

	def allowance(self, owner: str, spender: str) -> int:
		row = ChainStubAllowance.objects.filter(
			contract=self.usdt_contract, owner=owner.lower(), spender=spender.lower()
		).first()
		return int(row.amount_units) if row else 0

	@transaction.atomic
	def transfer_from(self, owner: str, recipient: str, amount_units: int) -> str:
		"""
		ERC-20 transferFrom with the admin as msg.sender.
		"""
		owner, recipient, amount_units = owner.lower(), recipient.lower(), int(amount_units)
		allowance, _ = ChainStubAllowance.objects.select_for_update().get_or_create(
			contract=self.usdt_contract, owner=owner, spender=self.admin_address
		)
		if int(allowance.amount_units) < amount_units:
			raise ChainCallReverted("ERC20: insufficient allowance")
		source = self._balance_row(self.usdt_contract, owner)
		if int(source.balance_units) < amount_units:
			raise ChainCallReverted("ERC20: transfer amount exceeds balance")

		allowance.amount_units = int(allowance.amount_units) - amount_units
		allowance.save(update_fields=["amount_units"])
		source.balance_units = int(source.balance_units) - amount_units
		source.save(update_fields=["balance_units"])
		self._credit(self.usdt_contract, recipient, amount_units)
		return self._record(self.usdt_contract, "transferFrom", owner, recipient, amount_units)

	@transaction.atomic
	def mint(self, recipient: str, amount_units: int) -> str:
		recipient, amount_units = recipient.lower(), int(amount_units)
		self._credit(self.token_contract, recipient, amount_units)
		return self._record(self.token_contract, "mint", self.admin_address, recipient, amount_units)

	# Dev helpers used by the /stub/chain endpoints

	@transaction.atomic
	def faucet(self, address: str, amount_units: int) -> str:
		address, amount_units = address.lower(), int(amount_units)
		self._credit(self.usdt_contract, address, amount_units)
		return self._record(self.usdt_contract, "faucet", "", address, amount_units)

	@transaction.atomic
	def approve(self, owner: str, amount_units: int, spender: str | None = None) -> str:
		owner, spender = owner.lower(), (spender or self.admin_address).lower()
		row, _ = ChainStubAllowance.objects.select_for_update().get_or_create(
			contract=self.usdt_contract, owner=owner, spender=spender
		)
		row.amount_units = int(amount_units)
		row.save(update_fields=["amount_units"])
		return self._record(self.usdt_contract, "approve", owner, spender, int(amount_units))

	def token_balance_of(self, address: str) -> int:
		return self.balance_of(address, contract=self.token_contract)

	def _balance_row(self, contract: str, address: str) -> ChainStubBalance:
		row, _ = ChainStubBalance.objects.select_for_update().get_or_create(
			contract=contract, address=address, defaults={"balance_units": 0}
		)
		return row

	def _credit(self, contract: str, address: str, amount_units: int):
		row = self._balance_row(contract, address)
		row.balance_units = int(row.balance_units) + amount_units
		row.save(update_fields=["balance_units"])

	def _record(self, contract: str, method: str, sender: str, recipient: str, amount_units: int) -> str:
		tx_hash = "0x" + secrets.token_hex(32)
		ChainStubTx.objects.create(
			tx_hash=tx_hash,
			contract=contract,
			method=method,
			sender=sender,
			recipient=recipient,
			amount_units=amount_units,
		)
		logger.info("stub %s %s -> %s (%s units): %s", method, sender or "-", recipient, amount_units, tx_hash)
		return tx_hash
