"""
Cross-chain creator correlation — earlier high-risk scans by the same creator
on other chains.
"""
from sqlalchemy import select
from shared.database import async_session
from agents.scanner.config import CROSS_CHAIN_MIN_RISK
from agents.scanner.models.db import ScanRecord
from agents.scanner.models.schemas import CrossChainThreat, ScanStatus
import structlog

logger = structlog.get_logger()

MAX_CORRELATED = 20


async def find_creator_threats(
    creator_address: str | None,
    chain: str,
    session_factory=None,
) -> list[CrossChainThreat] | None:
    """Prior scans by this creator elsewhere with risk >= CROSS_CHAIN_MIN_RISK.

    Returns None when correlation cannot run (no database or no known creator).
    """
    factory = session_factory or async_session
    if factory is None or not creator_address:
        return None

    async with factory() as db:
        result = await db.execute(
            select(ScanRecord)
            .where(ScanRecord.creator_address == creator_address.lower())
            .where(ScanRecord.chain != chain)
            .where(ScanRecord.scan_status == ScanStatus.COMPLETED.value)
            .where(ScanRecord.risk_score >= CROSS_CHAIN_MIN_RISK)
            .order_by(ScanRecord.risk_score.desc())
            .limit(MAX_CORRELATED)
        )
        records = result.scalars().all()

    threats = {}
    for record in records:
        key = (record.chain, record.token_address)
        if key in threats:
            continue
        threats[key] = CrossChainThreat(
            chain=record.chain,
            token_address=record.token_address,
            risk_score=record.risk_score,
            confidence_score=min(record.risk_score / 100, 1.0),
        )

    if threats:
        logger.info("creator_correlated", creator=creator_address, chain=chain, matches=len(threats))
    return list(threats.values())
