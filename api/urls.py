"""Public API surface for the token sale.

- /buy-tokens: checks balance + allowance, pulls USDT, mints tokens
- /token-price, /usdt-allowance: inputs the wallet front end needs before buying
- /transaction-history, /stats, /export-transactions: read-only ledger reporting
"""

from django.urls import path
from .views_ops import buy_tokens, health
from .views_read import token_price, usdt_allowance, transaction_history, stats, export_transactions


urlpatterns = [
	path("health", health),
	path("buy-tokens", buy_tokens),
	path("token-price", token_price),
	path("usdt-allowance", usdt_allowance),
	path("transaction-history", transaction_history),
	path("stats", stats),
	path("export-transactions", export_transactions),
]
