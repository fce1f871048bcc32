from django.conf import settings

from .chain_adapter import ChainAdapter, StubChainAdapter


def get_chain_adapter():
	"""
	Build the adapter selected by CHAIN_BACKEND ("web3" or "stub").
	"""
	backend = getattr(settings, "CHAIN_BACKEND", "web3")
	if backend == "stub":
		return StubChainAdapter(
			usdt_address=settings.USDT_CONTRACT_ADDRESS,
			token_address=settings.NATIVE_TOKEN_CONTRACT_ADDRESS,
			admin_address=settings.ADMIN_ADDRESS,
		)
	if backend == "web3":
		return ChainAdapter(
			rpc_url=settings.RPC_URL,
			usdt_address=settings.USDT_CONTRACT_ADDRESS,
			token_address=settings.NATIVE_TOKEN_CONTRACT_ADDRESS,
			private_key=settings.ADMIN_PRIVATE_KEY,
			receipt_timeout=settings.CHAIN_RECEIPT_TIMEOUT,
		)
	raise ValueError(f"Unknown CHAIN_BACKEND: {backend}")
