import asyncio
from datetime import datetime, timezone
import httpx
import pytest
from fastapi.testclient import TestClient
from shared.config import settings
from shared.database import get_db
from shared.networks import get_all_networks
from shared.signing import HmacSigner
from agents.scanner.main import app
from agents.scanner.models.schemas import ScanRequest, ScanResult, ScanStatus
from agents.scanner.services import ledger
from agents.scanner.services.orchestrator import Scanner, get_scanner
from fakes import TOKEN, FakeStore, gateway_handler, mock_client, offline_handler, open_session_factory

API = "/api/v1/scanner"
HEADERS = {"x-api-key": settings.API_SECRET_KEY}
SIGNER = HmacSigner("api-secret")


@pytest.fixture
def client():
    scanner = Scanner(
        httpx.AsyncClient(transport=httpx.MockTransport(offline_handler)),
        signer=SIGNER,
        stores=[FakeStore()],
        rpc_resolver=lambda network_id: "https://rpc.test",
    )
    app.dependency_overrides[get_scanner] = lambda: scanner
    yield TestClient(app)
    app.dependency_overrides.clear()
    asyncio.run(scanner.client.aclose())


def test_health(client):
    resp = client.get(f"{API}/health")
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"].startswith("ok")
    assert body["agent"] == "scanner"
    assert body["networks"] == len(get_all_networks())


def test_api_key_required(client):
    assert client.get(f"{API}/networks", headers={"x-api-key": "wrong"}).status_code == 401


def test_networks(client):
    resp = client.get(f"{API}/networks", headers=HEADERS)
    assert resp.status_code == 200
    assert {n["id"] for n in resp.json()} == {n.id for n in get_all_networks()}

    assert client.get(f"{API}/networks/solana", headers=HEADERS).json()["family"] == "solana"
    assert client.get(f"{API}/networks/dogechain", headers=HEADERS).status_code == 404

    coverage = client.get(f"{API}/networks/coverage", headers=HEADERS).json()
    assert coverage["total_networks"] == len(get_all_networks())
    assert "ethereum" in coverage["capabilities"]


def test_scan_unsupported_chain_returns_failed_result(client):
    resp = client.post(f"{API}/scan", headers=HEADERS, json={"address": TOKEN, "chain": "dogechain"})
    assert resp.status_code == 201
    body = resp.json()
    assert body["scan_status"] == "failed"
    assert body["risk_score"] is None


def test_scan_request_validation(client):
    assert client.post(f"{API}/scan", headers=HEADERS, json={"address": "", "chain": "ethereum"}).status_code == 422


def test_verify(client):
    async def failed_scan():
        async with mock_client(offline_handler) as http:
            scanner = Scanner(http, signer=SIGNER, stores=[])
            return await scanner.scan(ScanRequest(address=TOKEN, chain="dogechain"))

    result = asyncio.run(failed_scan())
    body = result.model_dump(mode="json")

    resp = client.post(f"{API}/verify", headers=HEADERS, json=body)
    assert resp.json() == {"valid": True, "signer": result.signer}

    body["error"] = "edited"
    assert client.post(f"{API}/verify", headers=HEADERS, json=body).json()["valid"] is False
    assert ledger.verify_result(result, SIGNER)


def test_stored_scan_verifies_against_pinned_document(client, db_url):
    store = FakeStore("bafkreistored")
    result = ScanResult(
        id="0b7f3c2e-8d1a-4e5b-9c6d-2f4a1b3c5d7e",
        token_address=TOKEN,
        chain="ethereum",
        risk_score=12,
        risk_label="safe",
        scan_status=ScanStatus.COMPLETED,
        scanner_version="1.0.0",
        created_at=datetime(2026, 3, 1, tzinfo=timezone.utc),
    )

    async def seed():
        engine, factory = await open_session_factory(db_url)
        try:
            async with mock_client(offline_handler) as http:
                pinned = await ledger.pin_result(ledger.sign_result(result, SIGNER), http, [store])
            await ledger.save_scan(pinned, factory)
        finally:
            await engine.dispose()

    asyncio.run(seed())

    async def sqlite_db():
        engine, factory = await open_session_factory(db_url)
        try:
            async with factory() as session:
                yield session
        finally:
            await engine.dispose()

    gateways = httpx.AsyncClient(transport=httpx.MockTransport(
        gateway_handler({"bafkreistored": store.documents[0]}, down=("gateway.pinata.cloud",))
    ))
    app.dependency_overrides[get_db] = sqlite_db
    app.dependency_overrides[get_scanner] = lambda: Scanner(gateways, signer=SIGNER, stores=[])
    try:
        body = client.get(f"{API}/scans/{result.id}/verify", headers=HEADERS).json()
        assert body["storage_hash"] == "bafkreistored"
        assert body["retrieved"] and body["document_matches"] and body["signature_valid"]
        assert body["valid"] is True

        assert client.get(f"{API}/scans/unknown/verify", headers=HEADERS).status_code == 404
    finally:
        asyncio.run(gateways.aclose())
