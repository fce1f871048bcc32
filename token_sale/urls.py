"""URL routing for the sale API + the local chain stub.


The /api/ namespace exposes the purchase and reporting endpoints; /stub/chain/
exposes helpers to fund and approve buyers when CHAIN_BACKEND=stub.
"""

from django.urls import path, include


urlpatterns = [
	path("api/", include("api.urls")),
	path("stub/chain/", include("chain_stub.urls")),
]
