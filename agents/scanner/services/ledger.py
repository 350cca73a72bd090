"""
Transparency Ledger — canonical form, signing, verification and persistence
of scan results.

The signature covers the canonical JSON of every field except the signature
itself and the storage fields, which only exist after the signed document has
been pinned.
"""
import json
import httpx
from sqlalchemy import select
from shared.database import async_session
from shared.ipfs import StorageError, retrieve_document, store_document
from agents.scanner.models.db import ScanRecord
from agents.scanner.models.schemas import LedgerVerification, ScanResult
import structlog

logger = structlog.get_logger()

UNSIGNED_FIELDS = {"signature", "storage_hash", "storage_error"}


def _dumps(data: dict) -> bytes:
    return json.dumps(data, sort_keys=True, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def canonical_payload(result: ScanResult) -> bytes:
    """Deterministic bytes the signature is computed over."""
    return _dumps(result.model_dump(mode="json", exclude=UNSIGNED_FIELDS))


def document(result: ScanResult) -> bytes:
    """The signed document as pinned to content-addressed storage."""
    return _dumps(result.model_dump(mode="json", exclude={"storage_hash", "storage_error"}))


def sign_result(result: ScanResult, signer) -> ScanResult:
    stamped = result.model_copy(update={"signer": f"{signer.scheme}:{signer.public_id}"})
    return stamped.model_copy(update={"signature": signer.sign(canonical_payload(stamped))})


def verify_result(result: ScanResult, signer) -> bool:
    if not result.signature:
        return False
    return signer.verify(result.signature, canonical_payload(result))


async def pin_result(result: ScanResult, client: httpx.AsyncClient, stores: list | None = None) -> ScanResult:
    """Pin the signed document; failures are recorded on the result, not raised."""
    try:
        cid = await store_document(client, document(result), label=f"scan-{result.id}", stores=stores)
    except StorageError as e:
        logger.warning("scan_pin_failed", scan_id=result.id, error=str(e))
        return result.model_copy(update={"storage_error": str(e)})
    return result.model_copy(update={"storage_hash": cid})


async def verify_pinned(
    result: ScanResult,
    client: httpx.AsyncClient,
    signer,
    gateways: list[str] | None = None,
) -> LedgerVerification:
    """Read the pinned document back and check it against the stored result.

    Valid only when the bytes served for storage_hash are exactly the signed
    document of this result and its signature checks out.
    """
    signature_valid = signer is not None and verify_result(result, signer)
    pinned = None
    if result.storage_hash:
        pinned = await retrieve_document(client, result.storage_hash, gateways)
    matches = pinned is not None and pinned == document(result)
    if pinned is not None and not matches:
        logger.warning("pinned_document_mismatch", scan_id=result.id, cid=result.storage_hash)
    return LedgerVerification(
        scan_id=result.id,
        storage_hash=result.storage_hash,
        retrieved=pinned is not None,
        document_matches=matches,
        signature_valid=signature_valid,
        valid=matches and signature_valid,
    )


def to_record(result: ScanResult) -> ScanRecord:
    return ScanRecord(
        id=result.id,
        token_address=result.token_address,
        chain=result.chain,
        token_name=result.token_name,
        token_symbol=result.token_symbol,
        creator_address=result.creator_address.lower() if result.creator_address else None,
        scan_status=result.scan_status.value,
        risk_score=result.risk_score,
        risk_label=result.risk_label,
        threat_categories=[c.value for c in result.threat_categories],
        degraded_analyses=list(result.degraded_analyses),
        deep_scan=result.deep_scan,
        result=result.model_dump(mode="json"),
        signer=result.signer,
        signature=result.signature,
        storage_hash=result.storage_hash,
        storage_error=result.storage_error,
    )


def from_record(record: ScanRecord) -> ScanResult:
    return ScanResult.model_validate(record.result)


async def save_scan(result: ScanResult, session_factory=None) -> bool:
    """Record the result in the database. Skipped when none is configured."""
    factory = session_factory or async_session
    if factory is None:
        return False
    async with factory() as db:
        db.add(to_record(result))
        await db.commit()
    return True


async def load_scan(scan_id: str, session_factory=None) -> ScanResult | None:
    factory = session_factory or async_session
    if factory is None:
        return None
    async with factory() as db:
        record = (await db.execute(select(ScanRecord).where(ScanRecord.id == scan_id))).scalar_one_or_none()
    return from_record(record) if record else None
