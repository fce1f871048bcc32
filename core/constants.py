"""Unit conversion helpers shared across the sale.


- USDT_DECIMALS / TOKEN_DECIMALS control the granularity of each contract.
- usdt_to_units / units_to_usdt convert between human USDT and integer base units.
- tokens_for_usdt applies the fixed price; tokens_to_units scales for mint().

All arithmetic is Decimal at AMOUNT_PRECISION digits so uint256-sized values stay exact.
"""

from decimal import Decimal, ROUND_DOWN, localcontext

from django.conf import settings

USDT_DECIMALS = getattr(settings, "USDT_DECIMALS", 6)
TOKEN_DECIMALS = getattr(settings, "TOKEN_DECIMALS", 18)

# Enough digits for any uint256
AMOUNT_PRECISION = 78

USDT_QUANTUM = Decimal(1).scaleb(-USDT_DECIMALS)
TOKEN_QUANTUM = Decimal(1).scaleb(-TOKEN_DECIMALS)


def token_price() -> Decimal:
	return Decimal(str(getattr(settings, "TOKEN_PRICE_USDT", "1")))


def usdt_to_units(amount_usdt: str | Decimal) -> int:
	"""
	Convert a human-readable USDT amount (e.g. "80.5") to integer base units
	"""
	with localcontext() as ctx:
		ctx.prec = AMOUNT_PRECISION
		amount_usdt = Decimal(str(amount_usdt))
		return int((amount_usdt * (10 ** USDT_DECIMALS)).to_integral_value(rounding=ROUND_DOWN))


def units_to_usdt(amount_units: int) -> Decimal:
	with localcontext() as ctx:
		ctx.prec = AMOUNT_PRECISION
		return Decimal(int(amount_units)).scaleb(-USDT_DECIMALS)


def tokens_for_usdt(amount_usdt: str | Decimal, price: Decimal | None = None) -> Decimal:
	"""
	Whole tokens bought for amount_usdt at the fixed price, truncated to TOKEN_DECIMALS places.
	"""
	price = token_price() if price is None else Decimal(str(price))
	with localcontext() as ctx:
		ctx.prec = AMOUNT_PRECISION
		return (Decimal(str(amount_usdt)) / price).quantize(TOKEN_QUANTUM, rounding=ROUND_DOWN)


def tokens_to_units(amount_tokens: str | Decimal) -> int:
	with localcontext() as ctx:
		ctx.prec = AMOUNT_PRECISION
		return int(Decimal(str(amount_tokens)).scaleb(TOKEN_DECIMALS).to_integral_value(rounding=ROUND_DOWN))


def plain(amount) -> str:
	"""
	Render a Decimal without exponent or trailing zeros: Decimal("50.000000") -> "50".
	"""
	if amount is None:
		return "0"
	value = Decimal(str(amount))
	if value == 0:
		return "0"
	return format(value.normalize(), "f")


def as_number(amount) -> int | float:
	"""
	JSON number for a price: int when integral, else float (prices carry at most 6 decimals).
	"""
	value = Decimal(str(amount))
	if value == value.to_integral_value():
		return int(value)
	return float(value)
