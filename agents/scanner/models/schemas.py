from datetime import datetime
from enum import Enum
from typing import Literal, Optional
from pydantic import BaseModel, Field, field_validator


class ScanStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class ThreatCategory(str, Enum):
    HONEYPOT = "honeypot"
    HIGH_FEES = "high_fees"
    MINT_AUTHORITY = "mint_authority"
    RUG_PULL = "rug_pull"
    SOCIAL_RED_FLAG = "social_red_flag"
    SELF_DESTRUCT = "self_destruct"
    PROXY_CONTRACT = "proxy_contract"
    FREEZE_AUTHORITY = "freeze_authority"
    CROSS_CHAIN_THREAT = "cross_chain_threat"


class ScanRequest(BaseModel):
    address: str = Field(min_length=1, max_length=128)
    chain: str = Field(min_length=1, max_length=32)
    deep_scan: bool = True

    @field_validator("address", "chain", mode="before")
    @classmethod
    def _strip(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("chain")
    @classmethod
    def _lower(cls, v: str) -> str:
        return v.lower()

    model_config = {"frozen": True}


class TokenMetadata(BaseModel):
    name: str = "Unknown"
    symbol: str = "UNKNOWN"
    creator_address: Optional[str] = None
    raw_code: str = ""
    contract_hash: Optional[str] = None
    decimals: Optional[int] = None
    total_supply: Optional[int] = None
    authorities: dict[str, Optional[str]] = Field(default_factory=dict)
    extensions: dict[str, dict] = Field(default_factory=dict)

    model_config = {"frozen": True}


class SimilarityMatch(BaseModel):
    name: str
    similarity_score: float

    model_config = {"frozen": True}


class BytecodeAnalysis(BaseModel):
    contract_size: int = 0
    function_count: int = 0
    has_mint_function: bool = False
    has_burn_function: bool = False
    has_pause_function: bool = False
    has_ownership_transfer: bool = False
    has_self_destruct: bool = False
    proxy_pattern: bool = False
    upgrade_pattern: bool = False
    has_freeze_authority: bool = False
    access_controls: tuple[str, ...] = ()
    matched_patterns: tuple[str, ...] = ()
    hidden_functions: tuple[str, ...] = ()
    time_locks: tuple[int, ...] = ()
    similarity_matches: tuple[SimilarityMatch, ...] = ()
    pattern_version: Optional[str] = None

    model_config = {"frozen": True}

    @property
    def unrestricted_mint(self) -> bool:
        return self.has_mint_function and not self.access_controls


class FeeAnalysis(BaseModel):
    buy_fee_percentage: float = 0.0
    sell_fee_percentage: float = 0.0
    transfer_fee_percentage: float = 0.0
    max_fee_percentage: float = 0.0
    honeypot_detected: bool = False
    hidden_fees: bool = False
    hidden_fees_likely: bool = False
    anti_bot_mechanisms: tuple[str, ...] = ()
    sandwich_protection: bool = False
    cooldown_periods: tuple[int, ...] = ()
    simulated: bool = False

    model_config = {"frozen": True}


class MajorHolder(BaseModel):
    address: str
    percentage: float
    is_known_exchange: bool = False

    model_config = {"frozen": True}


class LiquidityPair(BaseModel):
    dex: str
    pair_address: str
    liquidity_usd: float = 0.0

    model_config = {"frozen": True}


class LiquidityAnalysis(BaseModel):
    total_liquidity_usd: float = 0.0
    liquidity_locked: bool = False
    lock_percentage: float = 0.0
    lock_duration_days: Optional[int] = None
    major_holders: tuple[MajorHolder, ...] = ()
    pairs: tuple[LiquidityPair, ...] = ()
    liquidity_stability_score: int = 0
    rug_pull_indicators: tuple[str, ...] = ()

    model_config = {"frozen": True}


class SocialAnalysis(BaseModel):
    twitter_handle: Optional[str] = None
    twitter_created: Optional[datetime] = None
    twitter_followers: int = 0
    twitter_verified: bool = False
    telegram_group: Optional[str] = None
    telegram_members: int = 0
    github_repo: Optional[str] = None
    github_commits: int = 0
    github_contributors: int = 0
    website_domain: Optional[str] = None
    domain_age_days: Optional[int] = None
    community_sentiment: Literal["positive", "neutral", "negative"] = "neutral"
    social_red_flags: tuple[str, ...] = ()

    model_config = {"frozen": True}


class CrossChainThreat(BaseModel):
    chain: str
    token_address: str
    risk_score: int
    confidence_score: float = Field(ge=0.0, le=1.0)

    model_config = {"frozen": True}


class ScanResult(BaseModel):
    id: str
    token_address: str
    chain: str
    token_name: Optional[str] = None
    token_symbol: Optional[str] = None
    creator_address: Optional[str] = None
    contract_hash: Optional[str] = None
    risk_score: Optional[int] = Field(default=None, ge=0, le=100)
    risk_label: Optional[str] = None
    threat_categories: tuple[ThreatCategory, ...] = ()
    scan_status: ScanStatus
    deep_scan: bool = True
    bytecode_analysis: Optional[BytecodeAnalysis] = None
    fee_analysis: Optional[FeeAnalysis] = None
    liquidity_analysis: Optional[LiquidityAnalysis] = None
    social_analysis: Optional[SocialAnalysis] = None
    cross_chain_threats: tuple[CrossChainThreat, ...] = ()
    degraded_analyses: tuple[str, ...] = ()
    error: Optional[str] = None
    scanner_version: str
    pattern_version: Optional[str] = None
    scan_duration_ms: int = 0
    created_at: datetime
    signer: Optional[str] = None
    signature: Optional[str] = None
    storage_hash: Optional[str] = None
    storage_error: Optional[str] = None

    model_config = {"frozen": True}


# --- API schemas ---

class VerifyResponse(BaseModel):
    valid: bool
    signer: Optional[str] = None


class LedgerVerification(BaseModel):
    scan_id: str
    storage_hash: Optional[str] = None
    retrieved: bool = False
    document_matches: bool = False
    signature_valid: bool = False
    valid: bool = False


class ExplanationResponse(BaseModel):
    scan_id: str
    risk_score: Optional[int] = None
    risk_label: Optional[str] = None
    reasons: list[str] = []
    explorer_url: Optional[str] = None


class NetworkSummary(BaseModel):
    id: str
    display_name: str
    family: str
    currency: str
    threat_level: str
    scan_capabilities: dict[str, bool]
    average_scan_time: int


class HealthResponse(BaseModel):
    status: str = "ok"
    agent: str = "scanner"
    version: str = "1.0.0"
    networks: int = 0
    total_scanned: int = 0
