"""Errors raised by the purchase flow and the chain adapters.

Each error carries the HTTP status, a stable code and extra fields that the
api views merge into the JSON body.
"""


class SaleError(Exception):
	status_code = 400
	code = "SALE_ERROR"
	default_message = "Token sale error"

	def __init__(self, message: str | None = None, details: dict | None = None):
		self.message = message or self.default_message
		self.details = details or {}
		super().__init__(self.message)

	def as_api(self) -> dict:
		return {"error": self.message, "code": self.code, **self.details}


class InvalidRequest(SaleError):
	code = "INVALID_REQUEST"
	default_message = "Missing required parameters"


class InsufficientBalance(SaleError):
	code = "INSUFFICIENT_BALANCE"
	default_message = "Insufficient USDT balance"

	def __init__(self, required: str, available: str):
		super().__init__(details={"required": required, "available": available})


class InsufficientAllowance(SaleError):
	code = "INSUFFICIENT_ALLOWANCE"
	default_message = "Insufficient USDT allowance. Please approve USDT transfer first."

	def __init__(self, required: str, approved: str):
		super().__init__(details={"required": required, "approved": approved})


class InsufficientGas(SaleError):
	code = "INSUFFICIENT_GAS"
	default_message = "Insufficient funds for gas (admin wallet)"


class ChainCallReverted(SaleError):
	code = "CHAIN_CALL_REVERTED"

	def __init__(self, reason: str | None = None):
		self.reason = reason or "unknown revert"
		super().__init__(f"Blockchain call failed: {self.reason}")


class DuplicateRequest(SaleError):
	status_code = 409
	code = "DUPLICATE_REQUEST"
	default_message = "Purchase with this idempotency key was already attempted"


class UnknownFailure(SaleError):
	status_code = 500
	code = "UNKNOWN_FAILURE"
	default_message = "Failed to process token purchase"

	def __init__(self, details: str = "", message: str | None = None):
		super().__init__(message, details={"details": details})


class InvalidStateTransition(Exception):
	"""A ledger record was asked to leave a terminal state, or skip one."""
