"""Error rendering shared by the api views."""

import logging
from functools import wraps

from django.http import JsonResponse

from core.exceptions import SaleError

logger = logging.getLogger(__name__)


def json_errors(message: str):
	"""
	SaleError -> its own status and body; anything else -> 500 with `message`.
	"""
	def decorator(fn):
		@wraps(fn)
		def wrapper(request, *args, **kwargs):
			try:
				return fn(request, *args, **kwargs)
			except SaleError as e:
				if e.status_code >= 500:
					logger.error("%s %s: %s", request.method, request.path, e.details or e.message)
				return JsonResponse(e.as_api(), status=e.status_code)
			except Exception as e:
				logger.exception("%s %s failed", request.method, request.path)
				return JsonResponse({"error": message, "details": str(e)}, status=500)
		return wrapper
	return decorator
