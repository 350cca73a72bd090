"""In-memory stand-ins for chain adapters, storage and HTTP."""
import asyncio
import httpx
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from shared.models.base import Base
import agents.scanner.models.db  # noqa: F401  registers ScanRecord
from agents.scanner.models.schemas import TokenMetadata
from agents.scanner.services.adapters import ChainAdapter

TOKEN = "0x" + "11" * 20
PAIR = "0x" + "22" * 20
CREATOR = "0x" + "33" * 20


def mock_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


async def slow_handler(request: httpx.Request) -> httpx.Response:
    await asyncio.sleep(5)
    return httpx.Response(504)


def offline_handler(request: httpx.Request) -> httpx.Response:
    return httpx.Response(503, json={"error": "offline"})


class FakeAdapter(ChainAdapter):
    """Serves fixed metadata and on-chain reads from dicts."""

    def __init__(
        self,
        network,
        metadata: TokenMetadata | None = None,
        error: Exception | None = None,
        pair: str | None = None,
        reserves: tuple[int, int, str] = (0, 0, ""),
        balances: dict | None = None,
        supplies: dict | None = None,
        largest_accounts: list | None = None,
        token_supply: float = 0.0,
        delay: float = 0.0,
    ):
        super().__init__(network, "https://rpc.test")
        self.family = network.family
        self.metadata = metadata or TokenMetadata()
        self.error = error
        self.pair = pair
        self.reserves = reserves
        self.balances = {(t.lower(), h.lower()): v for (t, h), v in (balances or {}).items()}
        self.supplies = {t.lower(): v for t, v in (supplies or {}).items()}
        self.largest_accounts = largest_accounts or []
        self.token_supply = token_supply
        self.delay = delay

    async def _wait(self):
        if self.delay:
            await asyncio.sleep(self.delay)

    async def fetch_token_metadata(self, address: str) -> TokenMetadata:
        if self.error is not None:
            raise self.error
        return self.metadata

    async def get_pair(self, factory: str, token: str, base_asset: str) -> str | None:
        await self._wait()
        return self.pair

    async def get_reserves(self, pair: str) -> tuple[int, int, str]:
        return self.reserves

    async def balance_of(self, token: str, holder: str) -> int:
        return self.balances.get((token.lower(), holder.lower()), 0)

    async def total_supply_of(self, token: str) -> int:
        return self.supplies.get(token.lower(), 0)

    async def decimals_of(self, token: str) -> int:
        return 18

    async def get_token_supply(self, mint: str) -> float:
        await self._wait()
        return self.token_supply

    async def get_largest_accounts(self, mint: str) -> list[dict]:
        return self.largest_accounts


class FakeStore:
    name = "fake"

    def __init__(self, cid: str = "bafkreifakecid"):
        self.cid = cid
        self.documents: list[bytes] = []

    async def put(self, client, document: bytes, label: str) -> str:
        self.documents.append(document)
        return self.cid


class FailingStore:
    name = "failing"

    async def put(self, client, document: bytes, label: str) -> str:
        raise httpx.ConnectError("pinning service unreachable")


class SlowSocial:
    async def analyze(self, symbol, creator_address=None):
        await asyncio.sleep(5)


class RecordingSocial:
    def __init__(self):
        self.calls = []

    async def analyze(self, symbol, creator_address=None):
        self.calls.append(symbol)


async def open_session_factory(url: str):
    """Engine plus session factory over a fresh schema. Caller disposes the engine."""
    engine = create_async_engine(url)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    return engine, async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


def gateway_handler(documents: dict[str, bytes], down: tuple[str, ...] = ()):
    """IPFS gateways serving `documents` by CID; hosts in `down` answer 502."""
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host in down:
            return httpx.Response(502)
        cid = request.url.path.rsplit("/", 1)[-1]
        if cid in documents:
            return httpx.Response(200, content=documents[cid])
        return httpx.Response(404)
    return handler
