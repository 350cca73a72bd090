"""
Content-addressed storage — pins canonical scan documents to IPFS.

Providers are tried in order (Pinata, then a plain IPFS HTTP API node); the
first content address returned wins. Pinned documents are read back through
public gateways, also in order.
"""
import httpx
from shared.config import settings
from shared.utils.fallback import first_success
import structlog

logger = structlog.get_logger()


class StorageError(RuntimeError):
    """No storage provider accepted the document."""


class PinataStore:
    name = "pinata"

    def __init__(self, jwt: str, api_url: str):
        self.jwt = jwt
        self.api_url = api_url.rstrip("/")

    async def put(self, client: httpx.AsyncClient, document: bytes, label: str) -> str:
        resp = await client.post(
            f"{self.api_url}/pinning/pinFileToIPFS",
            headers={"Authorization": f"Bearer {self.jwt}"},
            files={"file": (f"{label}.json", document, "application/json")},
            timeout=30,
        )
        resp.raise_for_status()
        return resp.json()["IpfsHash"]


class IpfsNodeStore:
    name = "ipfs_node"

    def __init__(self, api_url: str):
        self.api_url = api_url.rstrip("/")

    async def put(self, client: httpx.AsyncClient, document: bytes, label: str) -> str:
        resp = await client.post(
            f"{self.api_url}/api/v0/add",
            params={"pin": "true"},
            files={"file": (f"{label}.json", document, "application/json")},
            timeout=30,
        )
        resp.raise_for_status()
        return resp.json()["Hash"]


def configured_stores() -> list:
    stores = []
    if settings.PINATA_JWT:
        stores.append(PinataStore(settings.PINATA_JWT, settings.PINATA_API_URL))
    if settings.IPFS_API_URL:
        stores.append(IpfsNodeStore(settings.IPFS_API_URL))
    return stores


async def store_document(
    client: httpx.AsyncClient,
    document: bytes,
    label: str,
    stores: list | None = None,
) -> str:
    """Store a document and return its content address (CID)."""
    stores = configured_stores() if stores is None else stores
    if not stores:
        raise StorageError("no storage provider configured")

    errors = []
    for store in stores:
        try:
            cid = await store.put(client, document, label)
            logger.info("document_pinned", provider=store.name, cid=cid, label=label)
            return cid
        except (httpx.HTTPError, KeyError, ValueError) as e:
            logger.warning("pin_failed", provider=store.name, label=label, error=str(e))
            errors.append(f"{store.name}: {e}")
    raise StorageError("; ".join(errors))


def configured_gateways() -> list[str]:
    return [g.strip().rstrip("/") for g in settings.IPFS_GATEWAY_URLS.split(",") if g.strip()]


def _gateway_fetcher(client: httpx.AsyncClient, gateway: str):
    async def fetch(cid: str) -> bytes:
        resp = await client.get(f"{gateway}/{cid}", follow_redirects=True)
        resp.raise_for_status()
        return resp.content

    fetch.__qualname__ = f"gateway[{gateway}]"
    return fetch


async def retrieve_document(
    client: httpx.AsyncClient,
    cid: str,
    gateways: list[str] | None = None,
    timeout: float = settings.PROVIDER_TIMEOUT_SECONDS,
) -> bytes | None:
    """Fetch a pinned document by CID from the first gateway that serves it."""
    gateways = configured_gateways() if gateways is None else gateways
    fetchers = [_gateway_fetcher(client, g) for g in gateways]
    document = await first_success(fetchers, cid, timeout=timeout, label="ipfs_retrieve")
    if document is None:
        logger.warning("document_unretrievable", cid=cid, gateways=len(gateways))
    return document
