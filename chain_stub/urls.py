from django.urls import path
from .views import balance, faucet, approve


urlpatterns = [
	path("balance", balance),
	path("faucet", faucet),
	path("approve", approve),
]
