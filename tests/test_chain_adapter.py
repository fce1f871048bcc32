from unittest import mock

from django.conf import settings
from django.test import SimpleTestCase, TestCase
from web3.exceptions import ContractLogicError

from chain_stub.models import ChainStubTx
from core.adapters import ChainAdapter, StubChainAdapter, get_chain_adapter
from core.adapters.chain_adapter import is_insufficient_funds, revert_reason
from core.exceptions import ChainCallReverted, InsufficientGas

BUYER = "0x" + "3" * 40
USDT = 10 ** 6


class StubChainAdapterTests(TestCase):

	def setUp(self):
		self.chain = get_chain_adapter()

	def test_factory_picks_stub_backend(self):
		self.assertIsInstance(self.chain, StubChainAdapter)

	def test_transfer_from_needs_allowance(self):
		self.chain.faucet(BUYER, 100 * USDT)

		with self.assertRaises(ChainCallReverted) as ctx:
			self.chain.transfer_from(BUYER, settings.ADMIN_ADDRESS, 10 * USDT)

		self.assertEqual(ctx.exception.reason, "ERC20: insufficient allowance")
		self.assertEqual(self.chain.balance_of(BUYER), 100 * USDT)

	def test_transfer_from_needs_balance(self):
		self.chain.faucet(BUYER, 5 * USDT)
		self.chain.approve(BUYER, 100 * USDT)

		with self.assertRaises(ChainCallReverted) as ctx:
			self.chain.transfer_from(BUYER, settings.ADMIN_ADDRESS, 10 * USDT)

		self.assertEqual(ctx.exception.reason, "ERC20: transfer amount exceeds balance")
		self.assertEqual(self.chain.allowance(BUYER, settings.ADMIN_ADDRESS), 100 * USDT)

	def test_transfer_from_moves_funds_and_spends_allowance(self):
		self.chain.faucet(BUYER, 100 * USDT)
		self.chain.approve(BUYER, 60 * USDT)

		tx_hash = self.chain.transfer_from(BUYER, settings.ADMIN_ADDRESS, 40 * USDT)

		self.assertEqual(self.chain.balance_of(BUYER), 60 * USDT)
		self.assertEqual(self.chain.balance_of(settings.ADMIN_ADDRESS), 40 * USDT)
		self.assertEqual(self.chain.allowance(BUYER, settings.ADMIN_ADDRESS), 20 * USDT)
		row = ChainStubTx.objects.get(tx_hash=tx_hash)
		self.assertEqual(row.method, "transferFrom")
		self.assertEqual(row.sender, BUYER)

	def test_mint_credits_token_contract_only(self):
		self.chain.mint(BUYER, 5 * 10 ** 18)

		self.assertEqual(self.chain.token_balance_of(BUYER), 5 * 10 ** 18)
		self.assertEqual(self.chain.balance_of(BUYER), 0)

	def test_hashes_are_unique(self):
		hashes = {self.chain.faucet(BUYER, 1) for _ in range(5)}

		self.assertEqual(len(hashes), 5)
		for h in hashes:
			self.assertEqual(len(h), 66)
			self.assertTrue(h.startswith("0x"))

	def test_addresses_are_case_insensitive(self):
		self.chain.faucet("0x" + "Ab" * 20, 7)
		self.assertEqual(self.chain.balance_of("0x" + "ab" * 20), 7)


class ErrorClassificationTests(SimpleTestCase):

	def test_revert_reason_strips_prefix(self):
		self.assertEqual(revert_reason(ContractLogicError("execution reverted: Pausable: paused")), "Pausable: paused")
		self.assertEqual(revert_reason(ContractLogicError("out of gas")), "out of gas")

	def test_insufficient_funds(self):
		err = ValueError({"code": -32000, "message": "insufficient funds for gas * price + value"})
		self.assertTrue(is_insufficient_funds(err))
		self.assertFalse(is_insufficient_funds(ValueError("nonce too low")))


class ChainAdapterTests(SimpleTestCase):

	def setUp(self):
		self.w3 = mock.Mock()
		self.w3.eth.get_transaction_count.return_value = 7
		self.w3.eth.send_raw_transaction.return_value = b"\x12" * 32
		self.w3.eth.wait_for_transaction_receipt.return_value = {"status": 1, "blockNumber": 42}
		self.adapter = ChainAdapter(
			rpc_url="http://localhost:8545",
			usdt_address=settings.USDT_CONTRACT_ADDRESS,
			token_address=settings.NATIVE_TOKEN_CONTRACT_ADDRESS,
			private_key=settings.ADMIN_PRIVATE_KEY,
			w3=self.w3,
		)
		self.fn = mock.Mock()
		self.fn.build_transaction.return_value = {"to": settings.USDT_CONTRACT_ADDRESS}

	def test_confirmed_transaction_returns_hex_hash(self):
		tx_hash = self.adapter._transact(self.fn, "mint")

		self.assertEqual(tx_hash, "0x" + "12" * 32)
		self.fn.build_transaction.assert_called_once_with({"from": self.adapter.account.address, "nonce": 7})
		self.w3.eth.wait_for_transaction_receipt.assert_called_once_with(b"\x12" * 32, timeout=120)

	def test_revert_during_estimation(self):
		self.fn.build_transaction.side_effect = ContractLogicError("execution reverted: ERC20: insufficient allowance")

		with self.assertRaises(ChainCallReverted) as ctx:
			self.adapter._transact(self.fn, "transferFrom")

		self.assertEqual(ctx.exception.message, "Blockchain call failed: ERC20: insufficient allowance")
		self.w3.eth.send_raw_transaction.assert_not_called()

	def test_admin_out_of_gas(self):
		self.w3.eth.send_raw_transaction.side_effect = ValueError(
			{"code": -32000, "message": "insufficient funds for gas * price + value"}
		)

		with self.assertRaises(InsufficientGas):
			self.adapter._transact(self.fn, "mint")

	def test_other_rpc_errors_propagate(self):
		self.w3.eth.send_raw_transaction.side_effect = ValueError("nonce too low")

		with self.assertRaises(ValueError):
			self.adapter._transact(self.fn, "mint")

	def test_failed_receipt(self):
		self.w3.eth.wait_for_transaction_receipt.return_value = {"status": 0, "blockNumber": 42}

		with self.assertRaises(ChainCallReverted) as ctx:
			self.adapter._transact(self.fn, "mint")

		self.assertIn("0x" + "12" * 32, ctx.exception.reason)
