"""Business orchestration for the token sale.

PurchaseService runs the buy flow:
	preconditions -> PENDING row -> transferFrom -> PAID -> mint -> SUCCESS
and marks the row FAILED when either chain write fails.
ReportingService answers the read-only ledger queries (history, stats, export).

Both receive the chain adapter / ledger manager they use through the constructor.
Each ledger write commits on its own so PENDING and PAID rows are visible to
reconcile_purchases while a purchase is still in flight.
"""
import csv
import io
import logging
import math
import uuid
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation

from django.db import DatabaseError, IntegrityError
from django.db.models import Avg, Count, Sum
from django.db.models.functions import TruncDate
from web3 import Web3

from .constants import (
	USDT_DECIMALS, USDT_QUANTUM, plain, token_price, tokens_for_usdt, tokens_to_units, units_to_usdt, usdt_to_units,
)
from .exceptions import DuplicateRequest, InsufficientAllowance, InsufficientBalance, InvalidRequest, SaleError, UnknownFailure
from .models import Transaction, TransactionStatus, TransactionType

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100
TOP_BUYERS_LIMIT = 10

# usdt_amount column is Decimal(24, 6)
MAX_USDT_AMOUNT = Decimal(10) ** 18
# amount column is Decimal(38, 18)
MAX_TOKEN_AMOUNT = Decimal(10) ** 20

CSV_HEADER = ["Date", "Type", "Amount", "Status", "Transaction Hash", "Token Price", "USDT Amount"]


def normalize_address(address) -> str | None:
	"""
	Checksummed form of a 0x address, or None when it is not one.
	"""
	if not address or not isinstance(address, str) or not Web3.is_address(address):
		return None
	return Web3.to_checksum_address(address)


def parse_usdt_amount(value) -> Decimal:
	if isinstance(value, bool):
		raise InvalidRequest("usdtAmount must be a positive number")
	try:
		amount = Decimal(str(value).strip())
	except InvalidOperation:
		raise InvalidRequest("usdtAmount must be a positive number")
	if not amount.is_finite() or amount <= 0:
		raise InvalidRequest("usdtAmount must be a positive number")
	if amount >= MAX_USDT_AMOUNT:
		raise InvalidRequest("usdtAmount is too large")
	if amount.normalize().as_tuple().exponent < -USDT_DECIMALS:
		raise InvalidRequest(f"usdtAmount supports at most {USDT_DECIMALS} decimal places")
	return amount


@dataclass
class PurchaseResult:
	transaction_hash: str
	token_amount: Decimal
	record: Transaction = field(repr=False)
	replayed: bool = False

	def as_api(self) -> dict:
		return {
			"success": True,
			"message": "Token purchase successful",
			"transactionHash": self.transaction_hash,
			"tokenAmount": plain(self.token_amount),
		}


class PurchaseService:
	"""
	Orchestrates one purchase against a chain adapter (ChainAdapter or StubChainAdapter).
	"""

	def __init__(self, chain, admin_address: str, ledger=None):
		self.chain = chain
		self.admin_address = admin_address
		self.ledger = ledger if ledger is not None else Transaction.objects

	def buy_tokens(self, usdt_amount, buyer_address, idempotency_key: str | None = None) -> PurchaseResult:
		"""
		Raises a SaleError subclass on every failure path. Chain or database errors
		that the adapters do not classify surface as UnknownFailure.
		"""
		try:
			return self._buy_tokens(usdt_amount, buyer_address, idempotency_key)
		except SaleError:
			raise
		except Exception as e:
			logger.exception("Unexpected error in buy_tokens for %s", buyer_address)
			raise UnknownFailure(str(e)) from e

	def _buy_tokens(self, usdt_amount, buyer_address, idempotency_key):
		if usdt_amount in (None, "") or not buyer_address:
			raise InvalidRequest()
		amount = parse_usdt_amount(usdt_amount)
		buyer = normalize_address(buyer_address)
		if buyer is None:
			raise InvalidRequest("buyerAddress is not a valid address")

		request_id = uuid.uuid4()
		if idempotency_key:
			try:
				request_id = uuid.UUID(str(idempotency_key))
			except ValueError:
				raise InvalidRequest("Idempotency-Key must be a UUID")
			existing = self.ledger.filter(request_id=request_id).first()
			if existing:
				return self._replay(existing, buyer, amount)

		price = token_price()
		usdt_units = usdt_to_units(amount)
		token_amount = tokens_for_usdt(amount, price)
		token_units = tokens_to_units(token_amount)
		if token_units <= 0:
			raise InvalidRequest("usdtAmount is too small to buy any tokens")
		if token_amount >= MAX_TOKEN_AMOUNT:
			raise InvalidRequest("usdtAmount buys more tokens than a single purchase allows")

		balance = self.chain.balance_of(buyer)
		logger.info("Buyer %s USDT balance: %s, required: %s", buyer, units_to_usdt(balance), amount)
		if balance < usdt_units:
			logger.warning("Insufficient USDT balance for %s", buyer)
			raise InsufficientBalance(required=plain(amount), available=plain(units_to_usdt(balance)))

		allowance = self.chain.allowance(buyer, self.admin_address)
		logger.info("Buyer %s USDT allowance for admin: %s", buyer, units_to_usdt(allowance))
		if allowance < usdt_units:
			logger.warning("Insufficient USDT allowance for %s", buyer)
			raise InsufficientAllowance(required=plain(amount), approved=plain(units_to_usdt(allowance)))

		try:
			record = self.ledger.create(
				request_id=request_id,
				buyer_address=buyer,
				type=TransactionType.BUY,
				amount=token_amount,
				status=TransactionStatus.PENDING,
				token_price=price,
				usdt_amount=amount,
			)
		except IntegrityError:
			# Another request with the same key got here first
			raise DuplicateRequest(details={"requestId": str(request_id)})
		logger.info("Purchase %s PENDING: %s USDT -> %s tokens for %s", request_id, amount, token_amount, buyer)

		try:
			payment_hash = self.chain.transfer_from(buyer, self.admin_address, usdt_units)
			record.transition(TransactionStatus.PAID, payment_tx_hash=payment_hash)
			logger.info("Purchase %s PAID: %s", request_id, payment_hash)
			mint_hash = self.chain.mint(buyer, token_units)
		except Exception as e:
			self._fail(record, e)
			raise

		record.transition(TransactionStatus.SUCCESS, tx_hash=mint_hash)
		logger.info("Purchase %s SUCCESS: minted %s tokens in %s", request_id, token_amount, mint_hash)
		return PurchaseResult(transaction_hash=mint_hash, token_amount=token_amount, record=record)

	def _replay(self, existing: Transaction, buyer: str, amount: Decimal) -> PurchaseResult:
		if existing.buyer_address != buyer or existing.usdt_amount != amount:
			raise InvalidRequest("Idempotency-Key was already used for a different purchase")
		if existing.status != TransactionStatus.SUCCESS:
			raise DuplicateRequest(details={"requestId": str(existing.request_id), "status": existing.status})
		logger.info("Purchase %s replayed", existing.request_id)
		return PurchaseResult(transaction_hash=existing.tx_hash, token_amount=existing.amount, record=existing, replayed=True)

	def _fail(self, record: Transaction, error: Exception):
		try:
			record.transition(TransactionStatus.FAILED, error=str(error))
		except DatabaseError:
			logger.exception("Could not mark purchase %s FAILED", record.request_id)
		if record.payment_tx_hash:
			logger.error(
				"Purchase %s PAID BUT NOT MINTED: buyer=%s usdt=%s payment=%s error=%s",
				record.request_id, record.buyer_address, record.usdt_amount, record.payment_tx_hash, error,
			)
		else:
			logger.error("Purchase %s FAILED before payment: %s", record.request_id, error)


def _date_range(qs, start=None, end=None):
	if start is not None:
		qs = qs.filter(timestamp__gte=start)
	if end is not None:
		qs = qs.filter(timestamp__lte=end)
	return qs


class ReportingService:
	"""
	Read-only queries over the ledger.
	"""

	def __init__(self, ledger=None):
		self.ledger = ledger if ledger is not None else Transaction.objects

	def get_history(self, buyer_address: str, page: int = 1, page_size: int = DEFAULT_PAGE_SIZE,
					type: str | None = None, status: str | None = None, start=None, end=None) -> dict:
		if page < 1:
			raise InvalidRequest("page must be >= 1")
		if not 1 <= page_size <= MAX_PAGE_SIZE:
			raise InvalidRequest(f"limit must be between 1 and {MAX_PAGE_SIZE}")

		qs = self.ledger.filter(buyer_address=buyer_address)
		if type:
			qs = qs.filter(type=type)
		if status:
			qs = qs.filter(status=status)
		qs = _date_range(qs, start, end)

		total = qs.count()
		offset = (page - 1) * page_size
		rows = qs.order_by("-timestamp", "-id")[offset:offset + page_size]
		return {
			"transactions": [r.as_api() for r in rows],
			"pagination": {
				"total": total,
				"page": page,
				"limit": page_size,
				"pages": math.ceil(total / page_size),
			},
		}

	def get_stats(self, start=None, end=None) -> dict:
		"""
		Totals, per-day rollup and top buyers over successful BUY rows.
		"""
		sold = _date_range(
			self.ledger.filter(type=TransactionType.BUY, status=TransactionStatus.SUCCESS), start, end
		)

		totals = sold.aggregate(
			tokens=Sum("amount"), usdt=Sum("usdt_amount"), count=Count("id"), average=Avg("usdt_amount"),
		)
		average = totals["average"]
		if average is not None:
			average = Decimal(average).quantize(USDT_QUANTUM)

		daily = (
			sold.annotate(day=TruncDate("timestamp"))
			.values("day")
			.annotate(tokens=Sum("amount"), usdt=Sum("usdt_amount"), count=Count("id"))
			.order_by("day")
		)
		top = (
			sold.values("buyer_address")
			.annotate(tokens=Sum("amount"), usdt=Sum("usdt_amount"), count=Count("id"))
			.order_by("-usdt", "buyer_address")[:TOP_BUYERS_LIMIT]
		)

		return {
			"totalStats": {
				"totalTokensSold": plain(totals["tokens"]),
				"totalUsdtRaised": plain(totals["usdt"]),
				"transactionCount": totals["count"],
				"averagePurchaseAmount": plain(average),
			},
			"dailyStats": [
				{
					"date": row["day"].isoformat(),
					"tokensSold": plain(row["tokens"]),
					"usdtRaised": plain(row["usdt"]),
					"transactionCount": row["count"],
				}
				for row in daily
			],
			"topBuyers": [
				{
					"buyerAddress": row["buyer_address"],
					"totalTokens": plain(row["tokens"]),
					"totalUsdt": plain(row["usdt"]),
					"transactionCount": row["count"],
				}
				for row in top
			],
		}

	def export_history(self, buyer_address: str) -> list[Transaction]:
		return list(self.ledger.filter(buyer_address=buyer_address).order_by("-timestamp", "-id"))


def render_csv(records) -> str:
	buf = io.StringIO()
	writer = csv.writer(buf, lineterminator="\n")
	writer.writerow(CSV_HEADER)
	for tx in records:
		writer.writerow([
			tx.timestamp.isoformat(),
			tx.type,
			plain(tx.amount),
			tx.status,
			tx.tx_hash,
			plain(tx.token_price),
			plain(tx.usdt_amount),
		])
	return buf.getvalue()
