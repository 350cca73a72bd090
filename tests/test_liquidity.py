import asyncio
import httpx
from agents.scanner.models.schemas import MajorHolder, TokenMetadata
from agents.scanner.services.liquidity import analyze_liquidity, rug_pull_indicators, stability_score
from fakes import CREATOR, PAIR, TOKEN, FakeAdapter, mock_client, offline_handler

UNCX = "0x663A5C229c09b049E36dCc11a9B0d4a8Eb9db214"
E18 = 10 ** 18


def price_handler(request: httpx.Request) -> httpx.Response:
    if request.url.path.endswith("/simple/price"):
        return httpx.Response(200, json={"ethereum": {"usd": 2000}})
    return httpx.Response(404)


def test_stability_score_tiers():
    assert stability_score(0, False) == 50
    assert stability_score(50_000, True) == 80
    assert stability_score(500_000, True) == 90
    assert stability_score(5_000_000, True) == 100


def test_indicators_ignore_exchange_holdings():
    holders = [MajorHolder(address="pool", percentage=80.0, is_known_exchange=True)]
    assert rug_pull_indicators(50_000, True, holders) == []
    holders.append(MajorHolder(address="whale", percentage=60.0))
    assert rug_pull_indicators(50_000, True, holders) == ["concentrated_holdings"]
    assert rug_pull_indicators(500, False, []) == ["unlocked_liquidity", "low_liquidity"]


def test_evm_pair_with_locked_lp(ethereum):
    adapter = FakeAdapter(
        ethereum,
        pair=PAIR,
        reserves=(400 * E18, 100 * E18, TOKEN),
        supplies={TOKEN: 1000 * E18, PAIR: 1000},
        balances={(PAIR, UNCX): 900, (TOKEN, CREATOR): 100 * E18},
    )
    metadata = TokenMetadata(creator_address=CREATOR, total_supply=1000 * E18)

    async def run():
        async with mock_client(price_handler) as client:
            return await analyze_liquidity(TOKEN, metadata, ethereum, adapter, client)

    liquidity = asyncio.run(run())
    assert liquidity.total_liquidity_usd == 400_000
    assert liquidity.liquidity_locked
    assert liquidity.lock_percentage == 90.0
    assert liquidity.liquidity_stability_score == 90
    assert liquidity.rug_pull_indicators == ()
    assert [(h.address, h.percentage, h.is_known_exchange) for h in liquidity.major_holders] == [
        (PAIR, 40.0, True),
        (CREATOR, 10.0, False),
    ]
    assert liquidity.pairs[0].dex == "Uniswap V2"


def test_evm_without_pool_is_unlocked_and_thin(ethereum):
    adapter = FakeAdapter(ethereum, pair=None, supplies={TOKEN: 1000})

    async def run():
        async with mock_client(price_handler) as client:
            return await analyze_liquidity(TOKEN, TokenMetadata(), ethereum, adapter, client)

    liquidity = asyncio.run(run())
    assert liquidity.total_liquidity_usd == 0
    assert not liquidity.liquidity_locked
    assert liquidity.rug_pull_indicators == ("unlocked_liquidity", "low_liquidity")


def solana_handler(request: httpx.Request) -> httpx.Response:
    if "dexscreener" in request.url.host:
        return httpx.Response(200, json={"pairs": [
            {"chainId": "solana", "dexId": "raydium", "pairAddress": "PoolA", "liquidity": {"usd": 50_000}},
            {"chainId": "ethereum", "dexId": "uniswap", "pairAddress": "0xpool", "liquidity": {"usd": 9_999_999}},
        ]})
    if "rugcheck" in request.url.host:
        return httpx.Response(200, json={
            "markets": [{"lp": {"lpLockedPct": 95.5}}, {"lp": {"lpLockedPct": 10}}],
            "knownAccounts": {"AmmOwner": {"name": "Raydium", "type": "AMM"}},
            "topHolders": [{"address": "Vault1", "owner": "AmmOwner"}],
        })
    return httpx.Response(404)


def test_solana_liquidity_and_holders(solana):
    adapter = FakeAdapter(
        solana,
        token_supply=1000.0,
        largest_accounts=[{"address": "Vault1", "uiAmount": 600}, {"address": "Whale", "uiAmount": 300}],
    )

    async def run():
        async with mock_client(solana_handler) as client:
            return await analyze_liquidity("Mint1111", TokenMetadata(), solana, adapter, client)

    liquidity = asyncio.run(run())
    assert liquidity.total_liquidity_usd == 50_000
    assert liquidity.lock_percentage == 95.5
    assert liquidity.liquidity_locked
    assert liquidity.rug_pull_indicators == ()
    assert liquidity.major_holders[0].address == "Vault1"
    assert liquidity.major_holders[0].is_known_exchange
    assert not liquidity.major_holders[1].is_known_exchange
    assert liquidity.liquidity_stability_score == 80


def test_solana_services_down(solana):
    adapter = FakeAdapter(solana)

    async def run():
        async with mock_client(offline_handler) as client:
            return await analyze_liquidity("Mint1111", TokenMetadata(), solana, adapter, client)

    liquidity = asyncio.run(run())
    assert liquidity.total_liquidity_usd == 0
    assert not liquidity.liquidity_locked
    assert "unlocked_liquidity" in liquidity.rug_pull_indicators
