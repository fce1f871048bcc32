"""Operational endpoints that move funds (buy-tokens) plus the liveness probe."""

import json
from decimal import Decimal

from django.conf import settings
from django.http import JsonResponse
from django.views.decorators.http import require_GET, require_POST

from core.adapters import get_chain_adapter
from core.exceptions import InvalidRequest
from core.services import PurchaseService

from .decorators import json_errors


@require_GET
def health(request):
	return JsonResponse({"ok": True})


@require_POST
@json_errors("Failed to process token purchase")
def buy_tokens(request):
	"""
	POST: Pull usdtAmount USDT from buyerAddress and mint the matching tokens to it.

	Optional Idempotency-Key header (UUID) makes retries safe: a completed purchase
	is replayed instead of charged twice.
	"""
	try:
		# Decimal keeps "0.1"-style JSON numbers exact
		body = json.loads(request.body or b"{}", parse_float=Decimal)
	except ValueError:
		raise InvalidRequest("Invalid JSON")
	if not isinstance(body, dict):
		raise InvalidRequest("Invalid JSON")

	service = PurchaseService(chain=get_chain_adapter(), admin_address=settings.ADMIN_ADDRESS)
	result = service.buy_tokens(
		body.get("usdtAmount"),
		body.get("buyerAddress"),
		idempotency_key=request.headers.get("Idempotency-Key"),
	)
	return JsonResponse(result.as_api())
