"""HTTP endpoints for the chain stub: fund and approve buyers without a real network.

Only served when CHAIN_BACKEND=stub; amounts are human USDT strings.
"""

import json
from functools import wraps

from django.conf import settings
from django.http import Http404, JsonResponse
from django.views.decorators.http import require_GET, require_POST

from api.decorators import json_errors
from core.adapters import get_chain_adapter
from core.constants import plain, units_to_usdt, usdt_to_units
from core.exceptions import InvalidRequest
from core.services import normalize_address, parse_usdt_amount


def stub_only(fn):
	@wraps(fn)
	def wrapper(request, *args, **kwargs):
		if getattr(settings, "CHAIN_BACKEND", "web3") != "stub":
			raise Http404("chain stub disabled")
		return fn(request, *args, **kwargs)
	return wrapper


def _body(request) -> tuple[str, int]:
	try:
		body = json.loads(request.body or b"{}")
	except ValueError:
		raise InvalidRequest("Invalid JSON")
	address = normalize_address(body.get("address")) if isinstance(body, dict) else None
	if address is None:
		raise InvalidRequest("address required")
	return address, usdt_to_units(parse_usdt_amount(body.get("amount")))


@stub_only
@require_GET
@json_errors("Failed to read stub balance")
def balance(request):
	"""
	GET: USDT and token balances of ?address=
	"""
	address = normalize_address(request.GET.get("address"))
	if address is None:
		raise InvalidRequest("address required")
	chain = get_chain_adapter()
	return JsonResponse({
		"usdt": plain(units_to_usdt(chain.balance_of(address))),
		"tokenUnits": str(chain.token_balance_of(address)),
		"allowance": plain(units_to_usdt(chain.allowance(address, settings.ADMIN_ADDRESS))),
	})


@stub_only
@require_POST
@json_errors("Failed to credit stub USDT")
def faucet(request):
	"""
	POST: Credit `amount` USDT to `address`
	"""
	address, amount_units = _body(request)
	tx_hash = get_chain_adapter().faucet(address, amount_units)
	return JsonResponse({"tx_hash": tx_hash}, status=201)


@stub_only
@require_POST
@json_errors("Failed to approve stub USDT")
def approve(request):
	"""
	POST: Set the allowance of `address` for the admin signer to `amount` USDT
	"""
	address, amount_units = _body(request)
	tx_hash = get_chain_adapter().approve(address, amount_units)
	return JsonResponse({"tx_hash": tx_hash}, status=201)
