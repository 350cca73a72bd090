"""
Shared price feed — CoinGecko with a short-lived in-process cache.

Used by the liquidity analyzer to value the base side of DEX pairs.
"""
import time
import httpx
from shared.config import settings
import structlog

logger = structlog.get_logger()

# Price cache: {coingecko_id: (price_usd, timestamp)}
_price_cache: dict[str, tuple[float, float]] = {}
CACHE_TTL = 60  # seconds


async def get_price_by_id(client: httpx.AsyncClient, coingecko_id: str) -> float | None:
    """Fetch a USD price from CoinGecko with caching. Falls back to a stale cached value."""
    now = time.time()
    if coingecko_id in _price_cache:
        cached_price, cached_at = _price_cache[coingecko_id]
        if (now - cached_at) < CACHE_TTL:
            return cached_price

    try:
        resp = await client.get(
            f"{settings.COINGECKO_API_URL}/simple/price",
            params={"ids": coingecko_id, "vs_currencies": "usd"},
        )
        resp.raise_for_status()
        data = resp.json()
        if coingecko_id in data and "usd" in data[coingecko_id]:
            price = float(data[coingecko_id]["usd"])
            _price_cache[coingecko_id] = (price, now)
            return price
    except (httpx.HTTPError, ValueError) as e:
        logger.warning("price_fetch_failed", coingecko_id=coingecko_id, error=str(e))

    if coingecko_id in _price_cache:
        return _price_cache[coingecko_id][0]
    return None


async def search_coin_id(client: httpx.AsyncClient, symbol: str) -> str | None:
    """Resolve a ticker symbol to the first matching CoinGecko coin id."""
    resp = await client.get(f"{settings.COINGECKO_API_URL}/search", params={"query": symbol})
    resp.raise_for_status()
    for coin in resp.json().get("coins", []):
        if (coin.get("symbol") or "").upper() == symbol.upper():
            return coin.get("id")
    return None


def clear_cache():
    _price_cache.clear()
