"""
Liquidity Analyzer — pooled liquidity in USD, LP lock share, holder
concentration, and the rug-pull indicators derived from them.

EVM: walks the network's configured V2-style factories on-chain.
Solana: DexScreener / Jupiter for liquidity, RPC for holders, RugCheck for LP locks.
"""
import httpx
from shared.config import settings
from shared.networks import NetworkConfig
from shared.price_feed import get_price_by_id
from shared.utils.fallback import first_success
from agents.scanner.config import (
    STABILITY_BASE,
    STABILITY_LOCKED_BONUS,
    STABILITY_TIER1_USD,
    STABILITY_TIER1_BONUS,
    STABILITY_TIER2_USD,
    STABILITY_TIER2_BONUS,
    LOW_LIQUIDITY_FLOOR_USD,
    HOLDER_CONCENTRATION_PCT,
    LOCKED_MIN_PCT,
    PROVIDER_TIMEOUT_SECONDS,
)
from agents.scanner.errors import AdapterUnavailableError
from agents.scanner.models.schemas import LiquidityAnalysis, LiquidityPair, MajorHolder, TokenMetadata
from agents.scanner.services.adapters import ChainAdapter, ZERO_ADDRESS
import structlog

logger = structlog.get_logger()

DEAD_ADDRESS = "0x000000000000000000000000000000000000dEaD"
BURN_ADDRESSES = (DEAD_ADDRESS, ZERO_ADDRESS)

MAX_HOLDERS = 10


def stability_score(total_liquidity_usd: float, locked: bool) -> int:
    score = STABILITY_BASE
    if locked:
        score += STABILITY_LOCKED_BONUS
    if total_liquidity_usd > STABILITY_TIER1_USD:
        score += STABILITY_TIER1_BONUS
    if total_liquidity_usd > STABILITY_TIER2_USD:
        score += STABILITY_TIER2_BONUS
    return min(100, score)


def rug_pull_indicators(total_liquidity_usd: float, locked: bool, holders: list[MajorHolder]) -> list[str]:
    indicators = []
    if not locked:
        indicators.append("unlocked_liquidity")
    if total_liquidity_usd < LOW_LIQUIDITY_FLOOR_USD:
        indicators.append("low_liquidity")
    if any(h.percentage > HOLDER_CONCENTRATION_PCT and not h.is_known_exchange for h in holders):
        indicators.append("concentrated_holdings")
    return indicators


def _finish(
    total: float,
    lock_pct: float | None,
    holders: list[MajorHolder],
    pairs: list[LiquidityPair],
) -> LiquidityAnalysis:
    locked = lock_pct is not None and lock_pct >= LOCKED_MIN_PCT
    return LiquidityAnalysis(
        total_liquidity_usd=round(total, 2),
        liquidity_locked=locked,
        lock_percentage=round(lock_pct or 0.0, 2),
        major_holders=sorted(holders, key=lambda h: -h.percentage)[:MAX_HOLDERS],
        pairs=pairs,
        liquidity_stability_score=stability_score(total, locked),
        rug_pull_indicators=rug_pull_indicators(total, locked, holders),
    )


# --- EVM ---

async def _lp_lock_share(adapter, pair: str, lockers: tuple[str, ...]) -> float | None:
    """Percent of LP supply held by lockers or burned. None when unresolved."""
    try:
        supply = await adapter.total_supply_of(pair)
        if not supply:
            return None
        locked = 0
        for holder in (*lockers, *BURN_ADDRESSES):
            locked += await adapter.balance_of(pair, holder)
    except AdapterUnavailableError as e:
        logger.warning("lp_lock_lookup_failed", chain=adapter.network.id, pair=pair, error=str(e))
        return None
    return min(locked / supply * 100, 100.0)


async def _evm_liquidity(address: str, metadata: TokenMetadata, network: NetworkConfig, adapter, client) -> LiquidityAnalysis:
    if not network.base_asset or not network.dex_factories:
        return _finish(0.0, None, [], [])

    native_price = await get_price_by_id(client, network.coingecko_id) if network.coingecko_id else None
    base_decimals = await adapter.decimals_of(network.base_asset)
    supply = metadata.total_supply
    if not supply:
        supply = await adapter.total_supply_of(address)

    total = 0.0
    pairs: list[LiquidityPair] = []
    holders: list[MajorHolder] = []
    lock_by_pair: dict[str, float | None] = {}

    for factory in network.dex_factories:
        try:
            pair = await adapter.get_pair(factory.address, address, network.base_asset)
            if not pair:
                continue
            reserve0, reserve1, token0 = await adapter.get_reserves(pair)
        except AdapterUnavailableError as e:
            logger.warning("pair_lookup_failed", chain=network.id, dex=factory.name, error=str(e))
            continue

        if token0.lower() == address.lower():
            token_reserve, base_reserve = reserve0, reserve1
        else:
            token_reserve, base_reserve = reserve1, reserve0

        usd = 0.0
        if native_price:
            usd = base_reserve / 10 ** base_decimals * native_price * 2
        total += usd
        pairs.append(LiquidityPair(dex=factory.name, pair_address=pair, liquidity_usd=round(usd, 2)))
        if supply:
            holders.append(MajorHolder(address=pair, percentage=round(token_reserve / supply * 100, 4), is_known_exchange=True))
        lock_by_pair[pair] = await _lp_lock_share(adapter, pair, network.liquidity_lockers)

    if metadata.creator_address and supply:
        try:
            balance = await adapter.balance_of(address, metadata.creator_address)
            if balance:
                holders.append(MajorHolder(address=metadata.creator_address, percentage=round(balance / supply * 100, 4)))
        except AdapterUnavailableError as e:
            logger.warning("creator_balance_failed", chain=network.id, error=str(e))

    # The deepest pool decides whether liquidity counts as locked
    lock_pct = None
    if pairs:
        deepest = max(pairs, key=lambda p: p.liquidity_usd)
        lock_pct = lock_by_pair.get(deepest.pair_address)

    return _finish(total, lock_pct, holders, pairs)


# --- Solana ---

async def dexscreener_liquidity(client: httpx.AsyncClient, address: str) -> tuple[float, list[LiquidityPair]] | None:
    resp = await client.get(f"{settings.DEXSCREENER_API_URL}/{address}")
    resp.raise_for_status()
    found = [p for p in resp.json().get("pairs") or [] if p.get("chainId") == "solana"]
    if not found:
        return None
    pairs = [
        LiquidityPair(
            dex=p.get("dexId", "unknown"),
            pair_address=p.get("pairAddress", ""),
            liquidity_usd=float((p.get("liquidity") or {}).get("usd") or 0),
        )
        for p in found
    ]
    return sum(p.liquidity_usd for p in pairs), pairs


async def jupiter_liquidity(client: httpx.AsyncClient, address: str) -> tuple[float, list[LiquidityPair]] | None:
    resp = await client.get(settings.JUPITER_PRICE_URL, params={"ids": address})
    resp.raise_for_status()
    entry = (resp.json().get("data") or {}).get(address)
    if not entry or entry.get("liquidity") is None:
        return None
    return float(entry["liquidity"]), []


SOLANA_LIQUIDITY_PROVIDERS = [dexscreener_liquidity, jupiter_liquidity]


async def rugcheck_report(client: httpx.AsyncClient, address: str) -> dict | None:
    try:
        resp = await client.get(f"{settings.RUGCHECK_API_URL}/{address}/report", timeout=PROVIDER_TIMEOUT_SECONDS)
        resp.raise_for_status()
        return resp.json()
    except (httpx.HTTPError, ValueError) as e:
        logger.warning("rugcheck_failed", service="rugcheck", address=address, error=str(e))
        return None


def _rugcheck_lock_pct(report: dict | None) -> float | None:
    if not report:
        return None
    shares = [
        float((m.get("lp") or {}).get("lpLockedPct") or 0)
        for m in report.get("markets") or []
    ]
    return max(shares) if shares else None


def _rugcheck_exchanges(report: dict | None) -> set[str]:
    """Addresses RugCheck labels as AMM pools or exchanges, plus owners of those."""
    if not report:
        return set()
    known = {
        addr for addr, meta in (report.get("knownAccounts") or {}).items()
        if (meta or {}).get("type") in ("AMM", "EXCHANGE")
    }
    for holder in report.get("topHolders") or []:
        if holder.get("owner") in known and holder.get("address"):
            known.add(holder["address"])
    return known


async def _solana_liquidity(address: str, metadata: TokenMetadata, network: NetworkConfig, adapter, client) -> LiquidityAnalysis:
    found = await first_success(SOLANA_LIQUIDITY_PROVIDERS, client, address, timeout=PROVIDER_TIMEOUT_SECONDS, label="solana_liquidity")
    total, pairs = found if found else (0.0, [])

    report = await rugcheck_report(client, address)
    exchanges = _rugcheck_exchanges(report) | {p.pair_address for p in pairs}

    holders: list[MajorHolder] = []
    try:
        supply = await adapter.get_token_supply(address)
        if supply:
            for account in (await adapter.get_largest_accounts(address))[:MAX_HOLDERS]:
                amount = float(account.get("uiAmount") or 0)
                holder = account.get("address", "")
                holders.append(MajorHolder(
                    address=holder,
                    percentage=round(amount / supply * 100, 4),
                    is_known_exchange=holder in exchanges,
                ))
    except AdapterUnavailableError as e:
        logger.warning("holder_lookup_failed", chain=network.id, address=address, error=str(e))

    return _finish(total, _rugcheck_lock_pct(report), holders, pairs)


async def analyze_liquidity(
    address: str,
    metadata: TokenMetadata,
    network: NetworkConfig,
    adapter: ChainAdapter,
    client: httpx.AsyncClient,
) -> LiquidityAnalysis:
    if network.family == "evm":
        analysis = await _evm_liquidity(address, metadata, network, adapter, client)
    elif network.family == "solana":
        analysis = await _solana_liquidity(address, metadata, network, adapter, client)
    else:
        analysis = _finish(0.0, None, [], [])

    logger.info(
        "liquidity_analyzed",
        chain=network.id,
        address=address,
        liquidity_usd=analysis.total_liquidity_usd,
        locked=analysis.liquidity_locked,
        indicators=analysis.rug_pull_indicators,
    )
    return analysis
