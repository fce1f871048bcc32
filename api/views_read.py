"""Read-only endpoints: price, allowance, and ledger reporting (history, stats, export)."""

from datetime import datetime, time, timezone as dt_timezone

from django.conf import settings
from django.http import HttpResponse, JsonResponse
from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime
from django.views.decorators.http import require_GET

from core.adapters import get_chain_adapter
from core.constants import TOKEN_DECIMALS, as_number, plain, token_price as current_token_price, units_to_usdt
from core.exceptions import InvalidRequest
from core.models import TransactionStatus, TransactionType
from core.services import DEFAULT_PAGE_SIZE, ReportingService, normalize_address, render_csv

from .decorators import json_errors


# --- Query parsing -----------------------------------------------------------

def _address_param(request) -> str:
	address = request.GET.get("address")
	if not address:
		raise InvalidRequest("Address is required")
	normalized = normalize_address(address)
	if normalized is None:
		raise InvalidRequest("Address is not a valid address")
	return normalized


def _int_param(request, name: str, default: int) -> int:
	raw = request.GET.get(name)
	if raw in (None, ""):
		return default
	try:
		return int(raw)
	except ValueError:
		raise InvalidRequest(f"{name} must be an integer")


def _choice_param(request, name: str, choices) -> str | None:
	raw = request.GET.get(name)
	if not raw:
		return None
	if raw not in choices.values:
		raise InvalidRequest(f"{name} must be one of {', '.join(choices.values)}")
	return raw


def _date_param(request, name: str, end: bool = False):
	"""
	ISO datetime, or a plain date meaning the start (or, for end bounds, the whole) of that UTC day.
	"""
	raw = request.GET.get(name)
	if not raw:
		return None
	try:
		day = parse_date(raw)
		value = None if day else parse_datetime(raw)
	except ValueError:
		day, value = None, None
	if day is not None:
		value = datetime.combine(day, time.max if end else time.min)
	if value is None:
		raise InvalidRequest(f"{name} must be an ISO-8601 date or datetime")
	if timezone.is_naive(value):
		value = timezone.make_aware(value, dt_timezone.utc)
	return value


# --- Endpoints ---------------------------------------------------------------

@require_GET
def token_price(request):
	"""
	GET: Fixed sale price in USDT per token + token decimals for formatting
	"""
	return JsonResponse({"price": as_number(current_token_price()), "decimals": TOKEN_DECIMALS})


@require_GET
@json_errors("Failed to get USDT allowance")
def usdt_allowance(request):
	"""
	GET: USDT the buyer has approved for the admin signer
	"""
	address = _address_param(request)
	allowance = get_chain_adapter().allowance(address, settings.ADMIN_ADDRESS)
	return JsonResponse({"allowance": plain(units_to_usdt(allowance))})


@require_GET
@json_errors("Failed to get transaction history")
def transaction_history(request):
	"""
	GET: Paginated purchases of one buyer, newest first
	"""
	address = _address_param(request)
	data = ReportingService().get_history(
		address,
		page=_int_param(request, "page", 1),
		page_size=_int_param(request, "limit", DEFAULT_PAGE_SIZE),
		type=_choice_param(request, "type", TransactionType),
		status=_choice_param(request, "status", TransactionStatus),
		start=_date_param(request, "startDate"),
		end=_date_param(request, "endDate", end=True),
	)
	return JsonResponse(data)


@require_GET
@json_errors("Failed to get sale statistics")
def stats(request):
	"""
	GET: Sale totals, daily rollup and top 10 buyers (successful buys only)
	"""
	data = ReportingService().get_stats(
		start=_date_param(request, "startDate"),
		end=_date_param(request, "endDate", end=True),
	)
	return JsonResponse(data)


@require_GET
@json_errors("Failed to export transactions")
def export_transactions(request):
	"""
	GET: Every purchase of one buyer as a CSV attachment (default) or JSON
	"""
	address = _address_param(request)
	fmt = request.GET.get("format", "csv")
	if fmt not in ("csv", "json"):
		raise InvalidRequest("format must be csv or json")

	records = ReportingService().export_history(address)
	if fmt == "json":
		return JsonResponse({"transactions": [r.as_api() for r in records]})

	response = HttpResponse(render_csv(records), content_type="text/csv")
	response["Content-Disposition"] = "attachment; filename=transactions.csv"
	return response
