import asyncio
import json
from datetime import datetime, timezone
import pytest
from shared.signing import EthSigner, HmacSigner, SigningKeyMissingError, get_signer
from agents.scanner.models.schemas import FeeAnalysis, ScanResult, ScanStatus, ThreatCategory
from agents.scanner.services import ledger
from agents.scanner.services.correlation import find_creator_threats
from fakes import (
    CREATOR,
    TOKEN,
    FailingStore,
    FakeStore,
    gateway_handler,
    mock_client,
    offline_handler,
    open_session_factory,
)

ETH_KEY = "0x" + "4c" * 32


def completed(**overrides) -> ScanResult:
    fields = dict(
        id="5d0e0d9c-6f43-4c55-9a43-1c2b8d1f0a01",
        token_address=TOKEN,
        chain="ethereum",
        token_name="Trap",
        token_symbol="TRAP",
        creator_address=CREATOR,
        risk_score=88,
        risk_label="critical",
        threat_categories=[ThreatCategory.HONEYPOT],
        scan_status=ScanStatus.COMPLETED,
        fee_analysis=FeeAnalysis(honeypot_detected=True),
        scanner_version="1.0.0",
        created_at=datetime(2026, 3, 1, tzinfo=timezone.utc),
    )
    fields.update(overrides)
    return ScanResult(**fields)


def test_canonical_payload_is_stable_and_excludes_unsigned_fields():
    result = completed()
    payload = ledger.canonical_payload(result)
    assert payload == ledger.canonical_payload(completed())
    decoded = json.loads(payload)
    assert not ledger.UNSIGNED_FIELDS & set(decoded)


@pytest.mark.parametrize("signer", [HmacSigner("test-secret"), EthSigner(ETH_KEY)], ids=["hmac", "eth"])
def test_signature_round_trip_and_tamper_detection(signer):
    signed = ledger.sign_result(completed(), signer)
    assert signed.signer == f"{signer.scheme}:{signer.public_id}"
    assert ledger.verify_result(signed, signer)

    assert not ledger.verify_result(signed.model_copy(update={"risk_score": 5}), signer)
    assert not ledger.verify_result(signed.model_copy(update={"threat_categories": []}), signer)
    assert ledger.verify_result(signed.model_copy(update={"storage_hash": "bafy-later"}), signer)


def test_unsigned_result_does_not_verify():
    assert not ledger.verify_result(completed(), HmacSigner("test-secret"))


def test_wrong_key_does_not_verify():
    signed = ledger.sign_result(completed(), HmacSigner("test-secret"))
    assert not ledger.verify_result(signed, HmacSigner("other-secret"))


def test_signer_requires_configured_key():
    with pytest.raises(SigningKeyMissingError):
        get_signer("hmac", "")
    with pytest.raises(ValueError):
        get_signer("rsa", "k")


def test_pin_records_content_address():
    store = FakeStore("bafkreiscan")
    signed = ledger.sign_result(completed(), HmacSigner("test-secret"))

    async def run():
        async with mock_client(offline_handler) as client:
            return await ledger.pin_result(signed, client, [store])

    pinned = asyncio.run(run())
    assert pinned.storage_hash == "bafkreiscan"
    assert pinned.storage_error is None
    assert json.loads(store.documents[0])["signature"] == signed.signature


def test_pin_failure_is_recorded_not_raised():
    async def run():
        async with mock_client(offline_handler) as client:
            return await ledger.pin_result(completed(), client, [FailingStore()])

    pinned = asyncio.run(run())
    assert pinned.storage_hash is None
    assert "unreachable" in pinned.storage_error
    assert pinned.scan_status is ScanStatus.COMPLETED


def test_save_and_load_round_trip(db_url):
    result = ledger.sign_result(completed(), HmacSigner("test-secret"))

    async def run():
        engine, factory = await open_session_factory(db_url)
        try:
            assert await ledger.save_scan(result, factory)
            return await ledger.load_scan(result.id, factory), await ledger.load_scan("missing", factory)
        finally:
            await engine.dispose()

    loaded, missing = asyncio.run(run())
    assert loaded == result
    assert missing is None


def test_creator_correlation_across_chains(db_url):
    prior = [
        completed(id="a" * 36, chain="bnb", token_address="0xbad1", creator_address=CREATOR.upper().replace("0X", "0x"), risk_score=80),
        completed(id="b" * 36, chain="bnb", token_address="0xmeh", risk_score=30),
        completed(id="c" * 36, chain="ethereum", token_address="0xsame", risk_score=99),
    ]

    async def run():
        engine, factory = await open_session_factory(db_url)
        try:
            for result in prior:
                await ledger.save_scan(result, factory)
            return (
                await find_creator_threats(CREATOR, "ethereum", factory),
                await find_creator_threats(None, "ethereum", factory),
            )
        finally:
            await engine.dispose()

    threats, unknown_creator = asyncio.run(run())
    assert [(t.chain, t.token_address, t.confidence_score) for t in threats] == [("bnb", "0xbad1", 0.8)]
    assert unknown_creator is None


GATEWAYS = ["https://gw-one.test/ipfs", "https://gw-two.test/ipfs"]


def pinned_scan(signer, store: FakeStore) -> ScanResult:
    async def run():
        async with mock_client(offline_handler) as client:
            return await ledger.pin_result(ledger.sign_result(completed(), signer), client, [store])
    return asyncio.run(run())


def verify_against(result: ScanResult, documents: dict, signer, down=()):
    async def run():
        async with mock_client(gateway_handler(documents, down)) as client:
            return await ledger.verify_pinned(result, client, signer, GATEWAYS)
    return asyncio.run(run())


def test_pinned_document_verifies_through_second_gateway():
    signer, store = HmacSigner("test-secret"), FakeStore("bafkreiscan")
    result = pinned_scan(signer, store)

    check = verify_against(result, {"bafkreiscan": store.documents[0]}, signer, down=("gw-one.test",))
    assert check.retrieved
    assert check.document_matches
    assert check.signature_valid
    assert check.valid


def test_stored_result_edited_after_pinning_is_invalid():
    signer, store = HmacSigner("test-secret"), FakeStore("bafkreiscan")
    edited = pinned_scan(signer, store).model_copy(update={"risk_score": 3})

    check = verify_against(edited, {"bafkreiscan": store.documents[0]}, signer)
    assert check.retrieved
    assert not check.document_matches
    assert not check.signature_valid
    assert not check.valid


def test_unretrievable_document_is_invalid():
    signer, store = HmacSigner("test-secret"), FakeStore("bafkreiscan")
    result = pinned_scan(signer, store)

    check = verify_against(result, {}, signer)
    assert not check.retrieved
    assert check.signature_valid
    assert not check.valid

    unpinned = verify_against(ledger.sign_result(completed(), signer), {}, signer)
    assert unpinned.storage_hash is None
    assert not unpinned.valid
