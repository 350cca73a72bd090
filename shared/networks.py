"""
Network Registry — static catalogue of the chains the scanner supports.

The raw catalogue below is validated once, at import time. A malformed entry
raises NetworkConfigError so the process refuses to start instead of failing
on the first scan that touches the broken chain.
"""
import re
from typing import Callable, Literal
from pydantic import BaseModel, Field, ValidationError, field_validator
from shared.config import settings

ChainFamily = Literal["evm", "solana", "cardano"]
ThreatLevel = Literal["very-low", "low", "medium", "high", "critical"]
ExplorerKind = Literal["address", "transaction", "token"]

_PLACEHOLDER = re.compile(r"\{([A-Z0-9_]+)\}")

# Path segment per explorer link kind, by chain family
_EXPLORER_PATHS: dict[str, dict[str, str]] = {
    "evm": {"address": "address", "transaction": "tx", "token": "token"},
    "solana": {"address": "account", "transaction": "tx", "token": "token"},
    "cardano": {"address": "address", "transaction": "transaction", "token": "token"},
}


class NetworkConfigError(ValueError):
    """Raised when the network catalogue fails validation."""


class ScanCapabilities(BaseModel):
    contract_analysis: bool
    bytecode_scanning: bool
    transaction_monitoring: bool
    honeypot_detection: bool
    rug_pull_detection: bool
    social_analysis: bool

    model_config = {"frozen": True}


class DexFactory(BaseModel):
    name: str
    address: str

    model_config = {"frozen": True}


class NetworkConfig(BaseModel):
    id: str
    display_name: str
    family: ChainFamily
    chain_id: int
    currency: str
    coingecko_id: str | None = None
    rpc_urls: tuple[str, ...] = Field(min_length=1)
    explorer_urls: tuple[str, ...] = Field(min_length=1)
    scan_capabilities: ScanCapabilities
    threat_level: ThreatLevel
    average_scan_time: int = Field(gt=0)
    known_threats: int = Field(ge=0)
    monthly_scans: int = Field(ge=0)
    defi_protocol_support: tuple[str, ...] = ()
    base_asset: str | None = None
    dex_factories: tuple[DexFactory, ...] = ()
    liquidity_lockers: tuple[str, ...] = ()

    model_config = {"frozen": True}

    @field_validator("rpc_urls", "explorer_urls")
    @classmethod
    def _http_urls(cls, urls: tuple[str, ...]) -> tuple[str, ...]:
        for url in urls:
            if not url.startswith(("https://", "http://")):
                raise ValueError(f"not an http(s) url: {url}")
        return urls


_FULL_CAPABILITIES = {
    "contract_analysis": True,
    "bytecode_scanning": True,
    "transaction_monitoring": True,
    "honeypot_detection": True,
    "rug_pull_detection": True,
    "social_analysis": True,
}

_RAW_NETWORKS: dict[str, dict] = {
    "ethereum": {
        "display_name": "Ethereum",
        "family": "evm",
        "chain_id": 1,
        "currency": "ETH",
        "coingecko_id": "ethereum",
        "rpc_urls": [
            "https://mainnet.infura.io/v3/{INFURA_API_KEY}",
            "https://eth-mainnet.g.alchemy.com/v2/{ALCHEMY_API_KEY}",
            "https://cloudflare-eth.com",
            "https://ethereum.publicnode.com",
        ],
        "explorer_urls": ["https://etherscan.io"],
        "scan_capabilities": _FULL_CAPABILITIES,
        "threat_level": "medium",
        "average_scan_time": 300,
        "known_threats": 1247,
        "monthly_scans": 15640,
        "defi_protocol_support": ["Uniswap", "Compound", "Aave", "Curve", "SushiSwap"],
        "base_asset": "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2",  # WETH
        "dex_factories": [
            {"name": "Uniswap V2", "address": "0x5C69bEe701ef814a2B6a3EDD4B1652CB9cc5aA6f"},
        ],
        "liquidity_lockers": [
            "0x663A5C229c09b049E36dCc11a9B0d4a8Eb9db214",  # UNCX
            "0xE2fE530C047f2d85298b07D9333C05737f1435fB",  # Team Finance
        ],
    },
    "solana": {
        "display_name": "Solana",
        "family": "solana",
        "chain_id": 101,
        "currency": "SOL",
        "coingecko_id": "solana",
        "rpc_urls": [
            "https://mainnet.helius-rpc.com/?api-key={HELIUS_API_KEY}",
            "https://api.mainnet-beta.solana.com",
            "https://rpc.ankr.com/solana",
        ],
        "explorer_urls": ["https://solscan.io", "https://explorer.solana.com"],
        "scan_capabilities": _FULL_CAPABILITIES,
        "threat_level": "high",
        "average_scan_time": 240,
        "known_threats": 2891,
        "monthly_scans": 22150,
        "defi_protocol_support": ["Raydium", "Orca", "Serum", "Mango", "Jupiter"],
    },
    "bnb": {
        "display_name": "BNB Smart Chain",
        "family": "evm",
        "chain_id": 56,
        "currency": "BNB",
        "coingecko_id": "binancecoin",
        "rpc_urls": [
            "https://bsc-dataseed.binance.org/",
            "https://bsc-dataseed1.defibit.io/",
            "https://bsc-dataseed1.ninicoin.io/",
        ],
        "explorer_urls": ["https://bscscan.com"],
        "scan_capabilities": _FULL_CAPABILITIES,
        "threat_level": "high",
        "average_scan_time": 180,
        "known_threats": 3452,
        "monthly_scans": 28940,
        "defi_protocol_support": ["PancakeSwap", "Venus", "Alpaca", "Biswap", "ApeSwap"],
        "base_asset": "0xbb4CdB9CBd36B01bD1cBaEBF2De08d9173bc095c",  # WBNB
        "dex_factories": [
            {"name": "PancakeSwap V2", "address": "0xcA143Ce32Fe78f1f7019d7d551a6402fC5350c73"},
        ],
        "liquidity_lockers": [
            "0x407993575c91ce7643a4d4cCACc9A98c36eE1BBE",  # PinkLock
            "0xC765bddB93b0D1c1A88282BA0fa6B2d00E3e0c83",  # UNCX
        ],
    },
    "polygon": {
        "display_name": "Polygon",
        "family": "evm",
        "chain_id": 137,
        "currency": "MATIC",
        "coingecko_id": "matic-network",
        "rpc_urls": [
            "https://polygon-rpc.com/",
            "https://polygon-mainnet.g.alchemy.com/v2/{ALCHEMY_API_KEY}",
            "https://rpc.ankr.com/polygon",
        ],
        "explorer_urls": ["https://polygonscan.com"],
        "scan_capabilities": _FULL_CAPABILITIES,
        "threat_level": "medium",
        "average_scan_time": 150,
        "known_threats": 1856,
        "monthly_scans": 19680,
        "defi_protocol_support": ["QuickSwap", "Aave", "Curve", "SushiSwap", "Balancer"],
        "base_asset": "0x0d500B1d8E8eF31E21C99d1Db9A6444d3ADf1270",  # WMATIC
        "dex_factories": [
            {"name": "QuickSwap", "address": "0x5757371414417b8C6CAad45bAeF941aBc7d3Ab32"},
        ],
    },
    "arbitrum": {
        "display_name": "Arbitrum One",
        "family": "evm",
        "chain_id": 42161,
        "currency": "ETH",
        "coingecko_id": "ethereum",
        "rpc_urls": [
            "https://arb1.arbitrum.io/rpc",
            "https://arbitrum-mainnet.infura.io/v3/{INFURA_API_KEY}",
            "https://rpc.ankr.com/arbitrum",
        ],
        "explorer_urls": ["https://arbiscan.io"],
        "scan_capabilities": _FULL_CAPABILITIES,
        "threat_level": "low",
        "average_scan_time": 210,
        "known_threats": 654,
        "monthly_scans": 8920,
        "defi_protocol_support": ["Uniswap V3", "GMX", "Radiant", "Camelot", "Balancer"],
        "base_asset": "0x82aF49447D8a07e3bd95BD0d56f35241523fBab1",  # WETH
        "dex_factories": [
            {"name": "SushiSwap", "address": "0xc35DADB65012eC5796536bD9864eD8773aBc74C4"},
        ],
    },
    "avalanche": {
        "display_name": "Avalanche C-Chain",
        "family": "evm",
        "chain_id": 43114,
        "currency": "AVAX",
        "coingecko_id": "avalanche-2",
        "rpc_urls": [
            "https://api.avax.network/ext/bc/C/rpc",
            "https://rpc.ankr.com/avalanche",
            "https://ava-mainnet.public.blastapi.io/ext/bc/C/rpc",
        ],
        "explorer_urls": ["https://snowtrace.io"],
        "scan_capabilities": _FULL_CAPABILITIES,
        "threat_level": "medium",
        "average_scan_time": 180,
        "known_threats": 1234,
        "monthly_scans": 12450,
        "defi_protocol_support": ["Trader Joe", "Pangolin", "Aave", "Benqi", "Curve"],
        "base_asset": "0xB31f66AA3C1e785363F0875A1B74E27b85FD66c7",  # WAVAX
        "dex_factories": [
            {"name": "Trader Joe", "address": "0x9Ad6C38BE94206cA50bb0d90783181834C78e05e"},
        ],
    },
    "base": {
        "display_name": "Base",
        "family": "evm",
        "chain_id": 8453,
        "currency": "ETH",
        "coingecko_id": "ethereum",
        "rpc_urls": [
            "https://mainnet.base.org",
            "https://base-mainnet.g.alchemy.com/v2/{ALCHEMY_API_KEY}",
            "https://rpc.ankr.com/base",
        ],
        "explorer_urls": ["https://basescan.org"],
        "scan_capabilities": _FULL_CAPABILITIES,
        "threat_level": "low",
        "average_scan_time": 150,
        "known_threats": 423,
        "monthly_scans": 6780,
        "defi_protocol_support": ["Uniswap V3", "Aerodrome", "Compound", "BaseSwap"],
        "base_asset": "0x4200000000000000000000000000000000000006",  # WETH
        "dex_factories": [
            {"name": "BaseSwap", "address": "0x8909Dc15e40173Ff4699343b6eB8132c65e18eC6"},
        ],
    },
    "fantom": {
        "display_name": "Fantom Opera",
        "family": "evm",
        "chain_id": 250,
        "currency": "FTM",
        "coingecko_id": "fantom",
        "rpc_urls": [
            "https://rpc.ftm.tools/",
            "https://rpc.ankr.com/fantom",
            "https://fantom-mainnet.public.blastapi.io",
        ],
        "explorer_urls": ["https://ftmscan.com"],
        "scan_capabilities": _FULL_CAPABILITIES,
        "threat_level": "medium",
        "average_scan_time": 165,
        "known_threats": 987,
        "monthly_scans": 9340,
        "defi_protocol_support": ["SpookySwap", "Curve", "Geist", "Beethoven X", "SpiritSwap"],
        "base_asset": "0x21be370D5312f44cB42ce377BC9b8a0cEF1A4C83",  # WFTM
        "dex_factories": [
            {"name": "SpookySwap", "address": "0x152eE697f2E276fA89E96742e9bB9aB1F2E61bE3"},
        ],
    },
    "optimism": {
        "display_name": "Optimism",
        "family": "evm",
        "chain_id": 10,
        "currency": "ETH",
        "coingecko_id": "ethereum",
        "rpc_urls": [
            "https://mainnet.optimism.io",
            "https://optimism-mainnet.infura.io/v3/{INFURA_API_KEY}",
            "https://rpc.ankr.com/optimism",
        ],
        "explorer_urls": ["https://optimistic.etherscan.io"],
        "scan_capabilities": _FULL_CAPABILITIES,
        "threat_level": "low",
        "average_scan_time": 195,
        "known_threats": 567,
        "monthly_scans": 7890,
        "defi_protocol_support": ["Uniswap V3", "Velodrome", "Aave", "Curve", "Synthetix"],
        "base_asset": "0x4200000000000000000000000000000000000006",  # WETH
        "dex_factories": [
            {"name": "Velodrome", "address": "0x0c3c1c532F1e39EdF36BE9Fe0bE1410313E074Bf"},
        ],
    },
    "blast": {
        "display_name": "Blast",
        "family": "evm",
        "chain_id": 81457,
        "currency": "ETH",
        "coingecko_id": "ethereum",
        "rpc_urls": ["https://rpc.blast.io"],
        "explorer_urls": ["https://blastscan.io"],
        "scan_capabilities": _FULL_CAPABILITIES,
        "threat_level": "medium",
        "average_scan_time": 150,
        "known_threats": 212,
        "monthly_scans": 3120,
        "defi_protocol_support": ["Thruster", "BlastDEX"],
        "base_asset": "0x4300000000000000000000000000000000000004",  # WETH
        "dex_factories": [
            {"name": "BlastDEX", "address": "0x5C346464d33F90bABaf70dB6388D4607055f17c7"},
        ],
    },
    "cardano": {
        "display_name": "Cardano",
        "family": "cardano",
        "chain_id": 1815,  # Cardano has no EVM chain id; registry-local value
        "currency": "ADA",
        "coingecko_id": "cardano",
        "rpc_urls": [
            "https://cardano-mainnet.blockfrost.io/api/v0",
            "https://graphql-api.mainnet.dandelion.link",
        ],
        "explorer_urls": ["https://cardanoscan.io", "https://explorer.cardano.org"],
        "scan_capabilities": {
            "contract_analysis": True,
            "bytecode_scanning": False,
            "transaction_monitoring": True,
            "honeypot_detection": False,
            "rug_pull_detection": True,
            "social_analysis": True,
        },
        "threat_level": "very-low",
        "average_scan_time": 270,
        "known_threats": 156,
        "monthly_scans": 3450,
        "defi_protocol_support": ["SundaeSwap", "Minswap", "WingRiders", "MuesliSwap"],
    },
}


def _load_networks(raw: dict[str, dict]) -> dict[str, NetworkConfig]:
    networks = {}
    for network_id, entry in raw.items():
        try:
            networks[network_id] = NetworkConfig(id=network_id, **entry)
        except (ValidationError, TypeError) as e:
            raise NetworkConfigError(f"invalid network entry '{network_id}': {e}") from e
    return networks


SUPPORTED_NETWORKS: dict[str, NetworkConfig] = _load_networks(_RAW_NETWORKS)


def get_network_config(network_id: str) -> NetworkConfig | None:
    return SUPPORTED_NETWORKS.get(network_id.lower()) if network_id else None


def get_all_networks() -> list[NetworkConfig]:
    return list(SUPPORTED_NETWORKS.values())


def get_networks_by_threat_level(threat_level: str) -> list[NetworkConfig]:
    return [n for n in SUPPORTED_NETWORKS.values() if n.threat_level == threat_level]


def get_high_risk_networks() -> list[NetworkConfig]:
    return [n for n in SUPPORTED_NETWORKS.values() if n.threat_level in ("high", "critical")]


def get_total_network_coverage() -> dict:
    networks = list(SUPPORTED_NETWORKS.values())
    return {
        "total_networks": len(networks),
        "total_scans": sum(n.monthly_scans for n in networks),
        "total_threats": sum(n.known_threats for n in networks),
        "average_scan_time": round(sum(n.average_scan_time for n in networks) / len(networks)),
    }


def get_scan_capabilities_matrix() -> dict[str, dict[str, bool]]:
    return {n.id: n.scan_capabilities.model_dump() for n in SUPPORTED_NETWORKS.values()}


def _substitute_placeholders(url: str) -> str:
    """Fill {KEY} markers from settings; unknown or empty keys stay unfilled."""
    def _fill(match: re.Match) -> str:
        value = getattr(settings, match.group(1), "")
        return value if value else match.group(0)
    return _PLACEHOLDER.sub(_fill, url)


def _default_liveness(url: str) -> bool:
    return url.startswith(("https://", "http://")) and not _PLACEHOLDER.search(url)


def resolve_rpc(network_id: str, is_live: Callable[[str], bool] | None = None) -> str | None:
    """Return the first RPC endpoint that is fully substituted and passes is_live."""
    network = get_network_config(network_id)
    if network is None:
        return None
    for url in network.rpc_urls:
        candidate = _substitute_placeholders(url)
        if not _default_liveness(candidate):
            continue
        if is_live is None or is_live(candidate):
            return candidate
    return None


def explorer_url(network_id: str, kind: ExplorerKind, value: str) -> str | None:
    """Build an explorer link for an address, transaction or token."""
    network = get_network_config(network_id)
    if network is None or not value:
        return None
    segment = _EXPLORER_PATHS[network.family].get(kind)
    if segment is None:
        return None
    return f"{network.explorer_urls[0].rstrip('/')}/{segment}/{value}"
