"""List purchases where USDT moved but no token was minted, and optionally finish stuck ones.

- PAID rows older than --older-than minutes: the request died between payment and
  mint. With --mint the mint is retried and the row finalized SUCCESS or FAILED.
- FAILED rows with a payment hash: terminal, reported for manual refund or mint.

Before using --mint, check the token contract for a mint to the buyer at or after the
payment block: a row also stays PAID when the mint confirmed but the SUCCESS save failed.
"""

import logging
from datetime import timedelta

from django.core.management.base import BaseCommand
from django.utils import timezone

from core.adapters import get_chain_adapter
from core.constants import tokens_to_units
from core.models import Transaction, TransactionStatus

logger = logging.getLogger(__name__)


class Command(BaseCommand):
	help = "Report paid-but-not-minted purchases; --mint retries the mint for stale PAID rows."

	def add_arguments(self, parser):
		parser.add_argument("--older-than", type=int, default=15, help="minutes a PAID row must be idle")
		parser.add_argument("--mint", action="store_true", help="retry the mint for stale PAID rows")

	def handle(self, *args, older_than, mint, **options):
		cutoff = timezone.now() - timedelta(minutes=older_than)
		stale = list(Transaction.objects.filter(status=TransactionStatus.PAID, updated_at__lt=cutoff).order_by("timestamp"))
		failed_paid = list(
			Transaction.objects.filter(status=TransactionStatus.FAILED).exclude(payment_tx_hash="").order_by("timestamp")
		)

		for tx in failed_paid:
			self.stdout.write(
				f"FAILED after payment: {tx.request_id} buyer={tx.buyer_address} "
				f"usdt={tx.usdt_amount} payment={tx.payment_tx_hash} error={tx.error}"
			)
		for tx in stale:
			self.stdout.write(
				f"STUCK PAID: {tx.request_id} buyer={tx.buyer_address} usdt={tx.usdt_amount} payment={tx.payment_tx_hash}"
			)

		minted = 0
		if mint and stale:
			chain = get_chain_adapter()
			for tx in stale:
				if self._retry_mint(chain, tx):
					minted += 1

		self.stdout.write(self.style.SUCCESS(
			f"failed_after_payment={len(failed_paid)} stuck_paid={len(stale)} minted={minted}"
		))

	def _retry_mint(self, chain, tx: Transaction) -> bool:
		try:
			mint_hash = chain.mint(tx.buyer_address, tokens_to_units(tx.amount))
		except Exception as e:
			logger.error("Reconcile mint failed for %s: %s", tx.request_id, e)
			tx.transition(TransactionStatus.FAILED, error=f"reconcile mint failed: {e}")
			self.stdout.write(self.style.ERROR(f"mint failed for {tx.request_id}: {e}"))
			return False
		tx.transition(TransactionStatus.SUCCESS, tx_hash=mint_hash)
		logger.info("Reconciled %s: minted in %s", tx.request_id, mint_hash)
		self.stdout.write(f"minted {tx.request_id}: {mint_hash}")
		return True
