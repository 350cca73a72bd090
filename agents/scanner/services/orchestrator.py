"""
Scan Orchestrator — runs one scan from request to signed, persisted result.

pending -> processing -> {completed, failed}

Sub-analyses fan out as asyncio tasks, each under its own timeout, all under
a scan-wide deadline. Anything that fails, times out or is cancelled at the
deadline is left unavailable and named in degraded_analyses; scoring only
starts once every task has finished or been cancelled. Only precondition
failures (unknown chain, no endpoint, unreachable chain, unresolvable
address) fail the scan.
"""
import asyncio
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Callable
import httpx
import structlog
from sqlalchemy.exc import SQLAlchemyError
from shared.networks import NetworkConfig, get_network_config, resolve_rpc
from shared.signing import SigningKeyMissingError, get_signer
from agents.scanner.config import SCANNER_VERSION, SCAN_DEADLINE_SECONDS, SUBTASK_TIMEOUT_SECONDS
from agents.scanner.errors import (
    AdapterUnavailableError,
    ChainUnreachableError,
    InvalidTransitionError,
    NoRpcEndpointError,
    ScanPreconditionError,
    UnsupportedChainError,
)
from agents.scanner.models.schemas import ScanRequest, ScanResult, ScanStatus, TokenMetadata
from agents.scanner.services import ledger, scoring
from agents.scanner.services.adapters import ChainAdapter, get_adapter
from agents.scanner.services.bytecode import analyze_code, load_patterns
from agents.scanner.services.correlation import find_creator_threats
from agents.scanner.services.fees import analyze_fees
from agents.scanner.services.liquidity import analyze_liquidity
from agents.scanner.services.social import SocialFootprintAnalyzer

logger = structlog.get_logger()

_TRANSITIONS = {
    ScanStatus.PENDING: {ScanStatus.PROCESSING},
    ScanStatus.PROCESSING: {ScanStatus.COMPLETED, ScanStatus.FAILED},
    ScanStatus.COMPLETED: set(),
    ScanStatus.FAILED: set(),
}


class ScanBuilder:
    """Collects a scan's fields and assembles the immutable ScanResult once."""

    def __init__(self, request: ScanRequest, scan_id: str | None = None):
        self.id = scan_id or str(uuid.uuid4())
        self.request = request
        self.status = ScanStatus.PENDING
        self.created_at = datetime.now(timezone.utc)
        self._started = time.monotonic()
        self._fields: dict[str, Any] = {}
        self._degraded: list[str] = []

    def transition(self, status: ScanStatus):
        if status not in _TRANSITIONS[self.status]:
            raise InvalidTransitionError(f"{self.status.value} -> {status.value}")
        self.status = status

    def set(self, **fields):
        if self.status is not ScanStatus.PROCESSING:
            raise InvalidTransitionError(f"cannot set fields while {self.status.value}")
        self._fields.update(fields)

    def degrade(self, name: str):
        if name not in self._degraded:
            self._degraded.append(name)

    def elapsed(self) -> float:
        return time.monotonic() - self._started

    def fail(self, error: str):
        self.transition(ScanStatus.FAILED)
        self._fields = {k: v for k, v in self._fields.items() if k in ("token_name", "token_symbol", "creator_address", "contract_hash")}
        self._fields["error"] = error

    def build(self) -> ScanResult:
        if self.status not in (ScanStatus.COMPLETED, ScanStatus.FAILED):
            raise InvalidTransitionError(f"cannot build a {self.status.value} scan")
        return ScanResult(
            id=self.id,
            token_address=self.request.address,
            chain=self.request.chain,
            scan_status=self.status,
            deep_scan=self.request.deep_scan,
            degraded_analyses=list(self._degraded),
            scanner_version=SCANNER_VERSION,
            scan_duration_ms=int(self.elapsed() * 1000),
            created_at=self.created_at,
            **self._fields,
        )


class Scanner:
    """Entry point for scans. One instance shares its HTTP client across scans."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        signer=None,
        stores: list | None = None,
        session_factory=None,
        adapter_factory: Callable[..., ChainAdapter] = get_adapter,
        rpc_resolver: Callable[[str], str | None] = resolve_rpc,
        social_analyzer: SocialFootprintAnalyzer | None = None,
        patterns: dict | None = None,
        deadline: float = SCAN_DEADLINE_SECONDS,
        subtask_timeout: float = SUBTASK_TIMEOUT_SECONDS,
    ):
        self.client = client
        self.signer = signer if signer is not None else _default_signer()
        self.stores = stores
        self.session_factory = session_factory
        self.adapter_factory = adapter_factory
        self.rpc_resolver = rpc_resolver
        self.social = social_analyzer or SocialFootprintAnalyzer(client)
        self.patterns = patterns or load_patterns()
        self.deadline = deadline
        self.subtask_timeout = subtask_timeout

    async def scan(self, request: ScanRequest) -> ScanResult:
        builder = ScanBuilder(request)
        structlog.contextvars.bind_contextvars(scan_id=builder.id, chain=request.chain, address=request.address)
        try:
            builder.transition(ScanStatus.PROCESSING)
            try:
                network, adapter = self._resolve(request.chain)
                metadata = await self._fetch_metadata(adapter, request.address, builder)
            except ScanPreconditionError as e:
                logger.warning("scan_failed", error=str(e), reason=type(e).__name__)
                builder.fail(str(e))
                return await self._finalize(builder.build())

            builder.set(
                token_name=metadata.name,
                token_symbol=metadata.symbol,
                creator_address=metadata.creator_address,
                contract_hash=metadata.contract_hash,
                pattern_version=self.patterns.get("version"),
            )
            analyses = await self._run_analyses(request, network, adapter, metadata, builder)

            risk, categories = scoring.score(
                bytecode=analyses.get("bytecode"),
                fee=analyses.get("fees"),
                liquidity=analyses.get("liquidity"),
                social=analyses.get("social"),
                cross_chain=analyses.get("cross_chain"),
            )
            builder.set(
                risk_score=risk,
                risk_label=scoring.risk_label(risk),
                threat_categories=categories,
                bytecode_analysis=analyses.get("bytecode"),
                fee_analysis=analyses.get("fees"),
                liquidity_analysis=analyses.get("liquidity"),
                social_analysis=analyses.get("social"),
                cross_chain_threats=analyses.get("cross_chain") or [],
            )
            builder.transition(ScanStatus.COMPLETED)
            result = await self._finalize(builder.build())
            logger.info(
                "scan_completed",
                risk_score=result.risk_score,
                categories=[c.value for c in result.threat_categories],
                degraded=result.degraded_analyses,
                duration_ms=result.scan_duration_ms,
            )
            return result
        finally:
            structlog.contextvars.unbind_contextvars("scan_id", "chain", "address")

    def _resolve(self, chain: str) -> tuple[NetworkConfig, ChainAdapter]:
        network = get_network_config(chain)
        if network is None:
            raise UnsupportedChainError(f"unsupported chain: {chain}")
        rpc_url = self.rpc_resolver(network.id)
        if rpc_url is None:
            raise NoRpcEndpointError(f"no usable RPC endpoint for {network.id}")
        return network, self.adapter_factory(network, rpc_url, self.client)

    async def _fetch_metadata(self, adapter: ChainAdapter, address: str, builder: ScanBuilder) -> TokenMetadata:
        try:
            return await asyncio.wait_for(adapter.fetch_token_metadata(address), timeout=self.subtask_timeout)
        except asyncio.TimeoutError as e:
            raise ChainUnreachableError(f"{adapter.network.id}: no answer within {self.subtask_timeout}s") from e
        except AdapterUnavailableError as e:
            logger.warning("metadata_unavailable", error=str(e))
            builder.degrade("metadata")
            return TokenMetadata()

    def _jobs(self, request: ScanRequest, network: NetworkConfig, adapter: ChainAdapter, metadata: TokenMetadata, builder: ScanBuilder) -> dict:
        caps = network.scan_capabilities
        jobs = {}

        if request.deep_scan and caps.bytecode_scanning:
            if metadata.raw_code:
                jobs["bytecode"] = self._analyze_code(metadata.raw_code, network.family)
            else:
                builder.degrade("bytecode")
        if caps.honeypot_detection:
            jobs["fees"] = analyze_fees(request.address, metadata, network, self.client, self.patterns)
        if caps.rug_pull_detection:
            jobs["liquidity"] = analyze_liquidity(request.address, metadata, network, adapter, self.client)
        if request.deep_scan and caps.social_analysis:
            # Unknown symbol: nothing to look up
            if metadata.symbol and metadata.symbol != TokenMetadata().symbol:
                jobs["social"] = self.social.analyze(metadata.symbol, metadata.creator_address)
            else:
                builder.degrade("social")
        jobs["cross_chain"] = find_creator_threats(metadata.creator_address, network.id, self.session_factory)
        return jobs

    async def _analyze_code(self, raw_code: str, family: str):
        return analyze_code(raw_code, family, self.patterns)

    async def _guarded(self, name: str, coro) -> tuple[Any, bool]:
        """(value, ok). Never raises except on cancellation."""
        try:
            return await asyncio.wait_for(coro, timeout=self.subtask_timeout), True
        except asyncio.TimeoutError:
            logger.warning("analysis_timed_out", analysis=name, timeout=self.subtask_timeout)
        except Exception as e:
            logger.warning("analysis_failed", analysis=name, error=str(e), error_type=type(e).__name__)
        return None, False

    async def _run_analyses(self, request, network, adapter, metadata, builder: ScanBuilder) -> dict[str, Any]:
        jobs = self._jobs(request, network, adapter, metadata, builder)
        tasks = {name: asyncio.create_task(self._guarded(name, coro)) for name, coro in jobs.items()}

        remaining = max(self.deadline - builder.elapsed(), 0)
        done, pending = await asyncio.wait(tasks.values(), timeout=remaining)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        results = {}
        for name, task in tasks.items():
            if task in done and not task.cancelled():
                value, ok = task.result()
            else:
                logger.warning("analysis_cancelled_at_deadline", analysis=name, deadline=self.deadline)
                value, ok = None, False
            if not ok:
                builder.degrade(name)
            results[name] = value
        return results

    async def _finalize(self, result: ScanResult) -> ScanResult:
        if self.signer is not None:
            result = ledger.sign_result(result, self.signer)
        if result.scan_status is ScanStatus.COMPLETED:
            result = await ledger.pin_result(result, self.client, self.stores)
        try:
            await ledger.save_scan(result, self.session_factory)
        except (SQLAlchemyError, OSError, asyncio.TimeoutError) as e:
            # asyncpg connect failures surface as bare OSErrors
            error = f"database: {str(e) or type(e).__name__}"
            logger.error("scan_record_failed", scan_id=result.id, error=error)
            result = result.model_copy(
                update={"storage_error": "; ".join(filter(None, [result.storage_error, error]))}
            )
        return result


def _default_signer():
    try:
        return get_signer()
    except SigningKeyMissingError:
        logger.warning("result_signing_disabled", reason="SIGNING_KEY not configured")
        return None


_scanner: Scanner | None = None


def get_scanner() -> Scanner:
    """Process-wide scanner sharing one HTTP connection pool."""
    global _scanner
    if _scanner is None:
        client = httpx.AsyncClient(timeout=httpx.Timeout(SUBTASK_TIMEOUT_SECONDS), follow_redirects=True)
        _scanner = Scanner(client)
    return _scanner


async def close_scanner():
    global _scanner
    if _scanner is not None:
        await _scanner.client.aclose()
        _scanner = None
