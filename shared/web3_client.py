import json
from functools import lru_cache
from pathlib import Path
from web3 import Web3
from web3.middleware import ExtraDataToPOAMiddleware
from shared.config import settings

ABI_DIR = Path(__file__).parent / "abis"


@lru_cache(maxsize=32)
def get_web3(rpc_url: str) -> Web3:
    """One Web3 instance (and HTTP session pool) per RPC endpoint."""
    w3 = Web3(Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": settings.RPC_TIMEOUT_SECONDS}))
    w3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)
    return w3


@lru_cache(maxsize=None)
def load_abi(name: str) -> list:
    with open(ABI_DIR / f"{name}.json") as f:
        return json.load(f)
