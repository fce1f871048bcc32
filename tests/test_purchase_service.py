import uuid
from decimal import Decimal
from unittest import mock

from django.conf import settings
from django.test import TestCase, override_settings

from core.exceptions import (
	ChainCallReverted, DuplicateRequest, InsufficientAllowance, InsufficientBalance, InsufficientGas,
	InvalidRequest, InvalidStateTransition, UnknownFailure,
)
from core.models import Transaction, TransactionStatus
from core.services import PurchaseService

BUYER = "0x" + "3" * 40
PAYMENT_HASH = "0x" + "aa" * 32
MINT_HASH = "0x" + "bb" * 32


def make_chain(balance=100_000_000, allowance=100_000_000):
	chain = mock.Mock()
	chain.balance_of.return_value = balance
	chain.allowance.return_value = allowance
	chain.transfer_from.return_value = PAYMENT_HASH
	chain.mint.return_value = MINT_HASH
	return chain


class BuyTokensTests(TestCase):

	def setUp(self):
		self.chain = make_chain()
		self.service = PurchaseService(chain=self.chain, admin_address=settings.ADMIN_ADDRESS)

	def test_successful_purchase_records_mint_hash(self):
		result = self.service.buy_tokens("80", BUYER)

		self.assertEqual(result.transaction_hash, MINT_HASH)
		self.assertEqual(result.as_api()["tokenAmount"], "80")
		self.chain.transfer_from.assert_called_once_with(BUYER, settings.ADMIN_ADDRESS, 80_000_000)
		self.chain.mint.assert_called_once_with(BUYER, 80 * 10 ** 18)

		record = Transaction.objects.get()
		self.assertEqual(record.status, TransactionStatus.SUCCESS)
		self.assertEqual(record.tx_hash, MINT_HASH)
		self.assertEqual(record.payment_tx_hash, PAYMENT_HASH)
		self.assertEqual(record.amount, Decimal("80"))
		self.assertEqual(record.usdt_amount, Decimal("80"))
		self.assertEqual(record.token_price, Decimal("1"))
		self.assertEqual(record.type, "BUY")

	def test_insufficient_balance_makes_no_chain_write(self):
		self.chain.balance_of.return_value = 50_000_000

		with self.assertRaises(InsufficientBalance) as ctx:
			self.service.buy_tokens("80", BUYER)

		self.assertEqual(ctx.exception.details, {"required": "80", "available": "50"})
		self.chain.allowance.assert_not_called()
		self.chain.transfer_from.assert_not_called()
		self.chain.mint.assert_not_called()
		self.assertFalse(Transaction.objects.exists())

	def test_insufficient_allowance_reports_approved_amount(self):
		self.chain.balance_of.return_value = 100_000_000
		self.chain.allowance.return_value = 50_000_000

		with self.assertRaises(InsufficientAllowance) as ctx:
			self.service.buy_tokens("80", BUYER)

		self.assertEqual(ctx.exception.details, {"required": "80", "approved": "50"})
		self.assertEqual(ctx.exception.status_code, 400)
		self.chain.allowance.assert_called_once_with(BUYER, settings.ADMIN_ADDRESS)
		self.chain.transfer_from.assert_not_called()
		self.assertFalse(Transaction.objects.exists())

	def test_mint_failure_after_payment_marks_failed(self):
		self.chain.mint.side_effect = ChainCallReverted("Pausable: paused")

		with self.assertRaises(ChainCallReverted):
			self.service.buy_tokens("80", BUYER)

		record = Transaction.objects.get()
		self.assertEqual(record.status, TransactionStatus.FAILED)
		self.assertEqual(record.payment_tx_hash, PAYMENT_HASH)
		self.assertTrue(record.tx_hash.startswith("pending-"))
		self.assertIn("Pausable: paused", record.error)
		self.assertTrue(record.is_paid_not_minted)

	def test_transfer_failure_skips_mint(self):
		self.chain.transfer_from.side_effect = RuntimeError("nonce too low")

		with self.assertRaises(UnknownFailure) as ctx:
			self.service.buy_tokens("80", BUYER)

		self.assertEqual(ctx.exception.details, {"details": "nonce too low"})
		self.chain.mint.assert_not_called()
		record = Transaction.objects.get()
		self.assertEqual(record.status, TransactionStatus.FAILED)
		self.assertEqual(record.payment_tx_hash, "")
		self.assertFalse(record.is_paid_not_minted)

	def test_gas_error_is_surfaced(self):
		self.chain.transfer_from.side_effect = InsufficientGas()

		with self.assertRaises(InsufficientGas):
			self.service.buy_tokens("80", BUYER)

		self.assertEqual(Transaction.objects.get().status, TransactionStatus.FAILED)

	def test_chain_read_error_creates_no_record(self):
		self.chain.balance_of.side_effect = ConnectionError("rpc down")

		with self.assertRaises(UnknownFailure):
			self.service.buy_tokens("80", BUYER)

		self.assertFalse(Transaction.objects.exists())

	def test_failed_attempts_get_distinct_placeholder_hashes(self):
		self.chain.transfer_from.side_effect = ChainCallReverted("ERC20: insufficient allowance")

		for _ in range(2):
			with self.assertRaises(ChainCallReverted):
				self.service.buy_tokens("10", BUYER)

		hashes = set(Transaction.objects.values_list("tx_hash", flat=True))
		self.assertEqual(len(hashes), 2)

	def test_invalid_requests(self):
		bad = [
			(None, BUYER),
			("", BUYER),
			("80", None),
			("80", "not-an-address"),
			("-5", BUYER),
			("0", BUYER),
			("abc", BUYER),
			("1.0000001", BUYER),
			(True, BUYER),
		]
		for amount, buyer in bad:
			with self.subTest(amount=amount, buyer=buyer):
				with self.assertRaises(InvalidRequest):
					self.service.buy_tokens(amount, buyer)
		self.chain.balance_of.assert_not_called()

	def test_missing_parameters_message(self):
		with self.assertRaises(InvalidRequest) as ctx:
			self.service.buy_tokens(None, None)
		self.assertEqual(ctx.exception.message, "Missing required parameters")

	@override_settings(TOKEN_PRICE_USDT=Decimal("0.001"))
	def test_token_amount_beyond_ledger_column_is_rejected(self):
		with self.assertRaises(InvalidRequest):
			self.service.buy_tokens("100000000000000000", BUYER)

		self.chain.balance_of.assert_not_called()
		self.assertFalse(Transaction.objects.exists())


class IdempotencyTests(TestCase):

	def setUp(self):
		self.chain = make_chain()
		self.service = PurchaseService(chain=self.chain, admin_address=settings.ADMIN_ADDRESS)
		self.key = str(uuid.uuid4())

	def test_completed_purchase_is_replayed(self):
		first = self.service.buy_tokens("80", BUYER, idempotency_key=self.key)
		second = self.service.buy_tokens("80", BUYER, idempotency_key=self.key)

		self.assertFalse(first.replayed)
		self.assertTrue(second.replayed)
		self.assertEqual(second.transaction_hash, first.transaction_hash)
		self.assertEqual(self.chain.transfer_from.call_count, 1)
		self.assertEqual(Transaction.objects.count(), 1)
		self.assertEqual(str(Transaction.objects.get().request_id), self.key)

	def test_key_reused_for_other_purchase(self):
		self.service.buy_tokens("80", BUYER, idempotency_key=self.key)

		with self.assertRaises(InvalidRequest):
			self.service.buy_tokens("10", BUYER, idempotency_key=self.key)

	def test_failed_attempt_is_not_retried(self):
		self.chain.mint.side_effect = ChainCallReverted("paused")
		with self.assertRaises(ChainCallReverted):
			self.service.buy_tokens("80", BUYER, idempotency_key=self.key)

		with self.assertRaises(DuplicateRequest) as ctx:
			self.service.buy_tokens("80", BUYER, idempotency_key=self.key)

		self.assertEqual(ctx.exception.status_code, 409)
		self.assertEqual(ctx.exception.details["status"], TransactionStatus.FAILED)
		self.assertEqual(self.chain.transfer_from.call_count, 1)

	def test_malformed_key(self):
		with self.assertRaises(InvalidRequest):
			self.service.buy_tokens("80", BUYER, idempotency_key="not-a-uuid")


class StateMachineTests(TestCase):

	def test_terminal_states_do_not_move(self):
		record = Transaction.objects.create(
			buyer_address=BUYER, amount=Decimal("1"), token_price=Decimal("1"), usdt_amount=Decimal("1"),
		)
		self.assertTrue(record.tx_hash.startswith("pending-"))

		with self.assertRaises(InvalidStateTransition):
			record.transition(TransactionStatus.SUCCESS, tx_hash=MINT_HASH)

		record.transition(TransactionStatus.FAILED, error="boom")
		with self.assertRaises(InvalidStateTransition):
			record.transition(TransactionStatus.PAID)

		record.refresh_from_db()
		self.assertEqual(record.status, TransactionStatus.FAILED)
		self.assertEqual(record.error, "boom")
