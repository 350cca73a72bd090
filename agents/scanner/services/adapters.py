"""
Chain Adapters — one per chain family, selected once per scan.

EvmAdapter talks to a contract-model chain through web3.py (blocking calls run
in worker threads). SolanaAdapter talks JSON-RPC over the shared httpx client.
Both raise AddressNotFoundError when the address resolves to nothing and
ChainUnreachableError when the existence check itself cannot be made. Any
later network/RPC failure is AdapterUnavailableError.
"""
import asyncio
import hashlib
import json
import re
from abc import ABC, abstractmethod
import httpx
from web3 import Web3
from shared.networks import NetworkConfig
from shared.web3_client import get_web3, load_abi
from agents.scanner.errors import (
    AddressNotFoundError,
    AdapterUnavailableError,
    ChainUnreachableError,
    UnsupportedChainError,
)
from agents.scanner.models.schemas import TokenMetadata
import structlog

logger = structlog.get_logger()

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"
_BASE58_ADDRESS = re.compile(r"^[1-9A-HJ-NP-Za-km-z]{32,44}$")


def code_hash(raw_code: str) -> str | None:
    if not raw_code:
        return None
    return hashlib.sha256(raw_code.encode("utf-8")).hexdigest()


class ChainAdapter(ABC):
    family: str = ""

    def __init__(self, network: NetworkConfig, rpc_url: str):
        self.network = network
        self.rpc_url = rpc_url

    @abstractmethod
    async def fetch_token_metadata(self, address: str) -> TokenMetadata:
        """Resolve name, symbol, creator and raw code for a token address."""


class EvmAdapter(ChainAdapter):
    family = "evm"

    def __init__(self, network: NetworkConfig, rpc_url: str, w3: Web3 | None = None):
        super().__init__(network, rpc_url)
        self.w3 = w3 or get_web3(rpc_url)

    async def _call(self, fn, *args):
        try:
            return await asyncio.to_thread(fn, *args)
        except Exception as e:
            raise AdapterUnavailableError(self.network.id, str(e)) from e

    async def _optional(self, contract_fn):
        """Read-only call that may legitimately revert (e.g. no owner())."""
        try:
            return await asyncio.to_thread(contract_fn.call)
        except Exception as e:
            logger.debug("optional_call_failed", chain=self.network.id, fn=contract_fn.fn_name, error=str(e))
            return None

    def _checksum(self, address: str) -> str:
        if not Web3.is_address(address):
            raise AddressNotFoundError(f"malformed address: {address}")
        return Web3.to_checksum_address(address)

    def _erc20(self, address: str):
        return self.w3.eth.contract(address=address, abi=load_abi("ERC20"))

    async def fetch_token_metadata(self, address: str) -> TokenMetadata:
        checksum = self._checksum(address)
        try:
            code = await self._call(self.w3.eth.get_code, checksum)
        except AdapterUnavailableError as e:
            raise ChainUnreachableError(str(e)) from e
        if not code or not bytes(code).strip(b"\x00"):
            raise AddressNotFoundError(f"no contract code at {address} on {self.network.id}")

        raw_code = "0x" + bytes(code).hex()
        token = self._erc20(checksum)
        name = await self._optional(token.functions.name())
        symbol = await self._optional(token.functions.symbol())
        decimals = await self._optional(token.functions.decimals())
        total_supply = await self._optional(token.functions.totalSupply())
        owner = await self._optional(token.functions.owner())
        if not owner:
            owner = await self._optional(token.functions.getOwner())
        if owner == ZERO_ADDRESS:
            owner = None

        return TokenMetadata(
            name=name or "Unknown",
            symbol=symbol or "UNKNOWN",
            creator_address=owner,
            raw_code=raw_code,
            contract_hash=hashlib.sha256(bytes(code)).hexdigest(),
            decimals=decimals,
            total_supply=total_supply,
        )

    # --- read helpers used by the liquidity analyzer ---

    async def get_pair(self, factory: str, token: str, base_asset: str) -> str | None:
        contract = self.w3.eth.contract(
            address=Web3.to_checksum_address(factory), abi=load_abi("UniswapV2Factory"),
        )
        fn = contract.functions.getPair(Web3.to_checksum_address(token), Web3.to_checksum_address(base_asset))
        pair = await self._call(fn.call)
        if not pair or pair == ZERO_ADDRESS:
            return None
        return pair

    async def get_reserves(self, pair: str) -> tuple[int, int, str]:
        """(reserve0, reserve1, token0) of a V2-style pair."""
        contract = self.w3.eth.contract(address=Web3.to_checksum_address(pair), abi=load_abi("UniswapV2Pair"))
        reserve0, reserve1, _ts = await self._call(contract.functions.getReserves().call)
        token0 = await self._call(contract.functions.token0().call)
        return reserve0, reserve1, token0

    async def balance_of(self, token: str, holder: str) -> int:
        fn = self._erc20(Web3.to_checksum_address(token)).functions.balanceOf(Web3.to_checksum_address(holder))
        return await self._call(fn.call)

    async def total_supply_of(self, token: str) -> int:
        return await self._call(self._erc20(Web3.to_checksum_address(token)).functions.totalSupply().call)

    async def decimals_of(self, token: str) -> int:
        decimals = await self._optional(self._erc20(Web3.to_checksum_address(token)).functions.decimals())
        return decimals if decimals is not None else 18


class SolanaAdapter(ChainAdapter):
    family = "solana"

    def __init__(self, network: NetworkConfig, rpc_url: str, client: httpx.AsyncClient):
        super().__init__(network, rpc_url)
        self.client = client

    async def _rpc(self, method: str, params) -> dict | list | None:
        try:
            resp = await self.client.post(
                self.rpc_url,
                json={"jsonrpc": "2.0", "id": 1, "method": method, "params": params},
            )
            resp.raise_for_status()
            body = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            raise AdapterUnavailableError(self.network.id, f"{method}: {e}") from e
        if body.get("error"):
            raise AdapterUnavailableError(self.network.id, f"{method}: {body['error']}")
        return body.get("result")

    async def fetch_token_metadata(self, address: str) -> TokenMetadata:
        if not _BASE58_ADDRESS.match(address):
            raise AddressNotFoundError(f"malformed address: {address}")

        try:
            result = await self._rpc("getAccountInfo", [address, {"encoding": "jsonParsed"}])
        except AdapterUnavailableError as e:
            raise ChainUnreachableError(str(e)) from e
        account = (result or {}).get("value")
        if not account:
            raise AddressNotFoundError(f"no account at {address} on {self.network.id}")

        data = account.get("data")
        info = {}
        payload = ""
        if isinstance(data, dict):
            info = data.get("parsed", {}).get("info", {}) or {}
            payload = await self._raw_payload(address)
        elif isinstance(data, list) and data:
            payload = data[0]

        authorities = {
            "mintAuthority": info.get("mintAuthority"),
            "freezeAuthority": info.get("freezeAuthority"),
        }
        extensions = {
            ext["extension"]: ext.get("state") or {}
            for ext in info.get("extensions", [])
            if isinstance(ext, dict) and ext.get("extension")
        }
        raw_code = json.dumps(
            {"authorities": authorities, "extensions": extensions, "data": payload},
            sort_keys=True,
            separators=(",", ":"),
        )

        asset = await self._asset(address)
        metadata = (asset.get("content") or {}).get("metadata") or {}
        update_authorities = [a.get("address") for a in asset.get("authorities", []) if a.get("address")]
        supply = info.get("supply")

        return TokenMetadata(
            name=metadata.get("name") or "Unknown",
            symbol=metadata.get("symbol") or "UNKNOWN",
            creator_address=(update_authorities[0] if update_authorities else authorities["mintAuthority"]),
            raw_code=raw_code,
            contract_hash=code_hash(raw_code),
            decimals=info.get("decimals"),
            total_supply=int(supply) if supply is not None else None,
            authorities=authorities,
            extensions=extensions,
        )

    async def _raw_payload(self, address: str) -> str:
        try:
            result = await self._rpc("getAccountInfo", [address, {"encoding": "base64"}])
        except AdapterUnavailableError as e:
            logger.debug("raw_account_fetch_failed", chain=self.network.id, address=address, error=str(e))
            return ""
        data = ((result or {}).get("value") or {}).get("data") or []
        return data[0] if isinstance(data, list) and data else ""

    async def _asset(self, address: str) -> dict:
        """DAS getAsset; only some RPC providers implement it."""
        try:
            return await self._rpc("getAsset", {"id": address}) or {}
        except AdapterUnavailableError as e:
            logger.debug("asset_lookup_failed", chain=self.network.id, address=address, error=str(e))
            return {}

    # --- read helpers used by the liquidity analyzer ---

    async def get_largest_accounts(self, mint: str) -> list[dict]:
        result = await self._rpc("getTokenLargestAccounts", [mint])
        return (result or {}).get("value", [])

    async def get_token_supply(self, mint: str) -> float:
        result = await self._rpc("getTokenSupply", [mint])
        value = (result or {}).get("value", {})
        return float(value.get("uiAmount") or 0)


_ADAPTERS = {
    "evm": EvmAdapter,
    "solana": SolanaAdapter,
}


def get_adapter(network: NetworkConfig, rpc_url: str, client: httpx.AsyncClient) -> ChainAdapter:
    """Pick the adapter for a network's family. Families without one are unsupported."""
    adapter_cls = _ADAPTERS.get(network.family)
    if adapter_cls is None:
        raise UnsupportedChainError(f"no adapter for {network.family} chain '{network.id}'")
    if adapter_cls is SolanaAdapter:
        return SolanaAdapter(network, rpc_url, client)
    return adapter_cls(network, rpc_url)
