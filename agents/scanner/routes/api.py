"""
Scanner REST API routes.
"""
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from shared.database import get_db, async_session
from shared.auth import verify_api_key
from shared.networks import (
    NetworkConfig,
    explorer_url,
    get_all_networks,
    get_network_config,
    get_scan_capabilities_matrix,
    get_total_network_coverage,
)
from agents.scanner.config import AGENT_NAME, SCANNER_VERSION
from agents.scanner.models.db import ScanRecord
from agents.scanner.models.schemas import (
    ExplanationResponse,
    HealthResponse,
    LedgerVerification,
    NetworkSummary,
    ScanRequest,
    ScanResult,
    VerifyResponse,
)
from agents.scanner.services import ledger, scoring
from agents.scanner.services.orchestrator import Scanner, get_scanner

router = APIRouter(prefix="/api/v1/scanner", tags=["scanner"])


@router.get("/health", response_model=HealthResponse)
async def health():
    resp = HealthResponse(agent=AGENT_NAME, version=SCANNER_VERSION, networks=len(get_all_networks()))
    if async_session is None:
        resp.status = "ok (no db)"
        return resp
    try:
        async with async_session() as db:
            total = await db.execute(select(func.count()).select_from(ScanRecord))
            resp.total_scanned = total.scalar() or 0
    except Exception:
        resp.status = "ok (no db)"
    return resp


@router.get("/networks", response_model=list[NetworkSummary])
async def list_networks(_key: bool = Depends(verify_api_key)):
    return [
        NetworkSummary(
            id=n.id,
            display_name=n.display_name,
            family=n.family,
            currency=n.currency,
            threat_level=n.threat_level,
            scan_capabilities=n.scan_capabilities.model_dump(),
            average_scan_time=n.average_scan_time,
        )
        for n in get_all_networks()
    ]


@router.get("/networks/coverage")
async def network_coverage(_key: bool = Depends(verify_api_key)):
    """Aggregate coverage statistics and the per-chain capability matrix."""
    return {
        **get_total_network_coverage(),
        "capabilities": get_scan_capabilities_matrix(),
    }


@router.get("/networks/{network_id}", response_model=NetworkConfig)
async def get_network(network_id: str, _key: bool = Depends(verify_api_key)):
    network = get_network_config(network_id)
    if network is None:
        raise HTTPException(status_code=404, detail="Unknown network")
    return network


@router.post("/scan", response_model=ScanResult, status_code=201)
async def scan_token(
    req: ScanRequest,
    scanner: Scanner = Depends(get_scanner),
    _key: bool = Depends(verify_api_key),
):
    """Scan a token. Failed scans are returned with scan_status 'failed'."""
    return await scanner.scan(req)


@router.get("/scans", response_model=list[ScanResult])
async def list_scans(
    limit: int = Query(20, le=100),
    offset: int = Query(0, ge=0),
    chain: str | None = None,
    min_risk: int = Query(0, ge=0, le=100),
    db: AsyncSession = Depends(get_db),
    _key: bool = Depends(verify_api_key),
):
    """List scans, highest risk first."""
    q = select(ScanRecord)
    if chain:
        q = q.where(ScanRecord.chain == chain.lower())
    if min_risk > 0:
        q = q.where(ScanRecord.risk_score >= min_risk)
    q = q.order_by(ScanRecord.risk_score.desc(), ScanRecord.created_at.desc()).offset(offset).limit(limit)
    result = await db.execute(q)
    return [ledger.from_record(r) for r in result.scalars().all()]


async def _load(scan_id: str, db: AsyncSession) -> ScanResult:
    result = await db.execute(select(ScanRecord).where(ScanRecord.id == scan_id))
    record = result.scalar_one_or_none()
    if not record:
        raise HTTPException(status_code=404, detail="Scan not found")
    return ledger.from_record(record)


@router.get("/scans/{scan_id}", response_model=ScanResult)
async def get_scan(
    scan_id: str,
    db: AsyncSession = Depends(get_db),
    _key: bool = Depends(verify_api_key),
):
    return await _load(scan_id, db)


@router.get("/scans/{scan_id}/explanation", response_model=ExplanationResponse)
async def explain_scan(
    scan_id: str,
    db: AsyncSession = Depends(get_db),
    _key: bool = Depends(verify_api_key),
):
    scan = await _load(scan_id, db)
    reasons = []
    if scan.risk_score is not None:
        reasons = scoring.explain(
            scan.risk_score,
            bytecode=scan.bytecode_analysis,
            fee=scan.fee_analysis,
            liquidity=scan.liquidity_analysis,
            social=scan.social_analysis,
            cross_chain=scan.cross_chain_threats,
        )
    elif scan.error:
        reasons = [f"scan failed: {scan.error}"]
    return ExplanationResponse(
        scan_id=scan.id,
        risk_score=scan.risk_score,
        risk_label=scan.risk_label,
        reasons=reasons,
        explorer_url=explorer_url(scan.chain, "token", scan.token_address),
    )


@router.post("/verify", response_model=VerifyResponse)
async def verify_scan(
    result: ScanResult,
    scanner: Scanner = Depends(get_scanner),
    _key: bool = Depends(verify_api_key),
):
    """Check a scan result's signature against this scanner's key."""
    if scanner.signer is None:
        raise HTTPException(status_code=503, detail="Result signing not configured")
    return VerifyResponse(valid=ledger.verify_result(result, scanner.signer), signer=result.signer)


@router.get("/scans/{scan_id}/verify", response_model=LedgerVerification)
async def verify_stored_scan(
    scan_id: str,
    scanner: Scanner = Depends(get_scanner),
    db: AsyncSession = Depends(get_db),
    _key: bool = Depends(verify_api_key),
):
    """Re-fetch a stored scan's pinned document and check it end to end."""
    if scanner.signer is None:
        raise HTTPException(status_code=503, detail="Result signing not configured")
    scan = await _load(scan_id, db)
    return await ledger.verify_pinned(scan, scanner.client, scanner.signer)
