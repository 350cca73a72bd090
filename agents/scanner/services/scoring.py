"""
Threat Scoring — fuses the sub-analyses into a 0-100 risk score
(100 = most dangerous) and a set of threat categories.

Each component is first scored for safety (0-100, 100 = safest); the weighted
safety is renormalized over the components actually present and inverted into
risk. Honeypot and unrestricted-mint findings then act as floors so that no
liquidity or social bonus can pull a trap below them. Categories come from
explicit predicates and never look at the number.
"""
from datetime import datetime, timezone
from agents.scanner.config import (
    SCORING_WEIGHTS,
    HONEYPOT_RISK_FLOOR,
    UNRESTRICTED_MINT_RISK_FLOOR,
    HIDDEN_FEE_THRESHOLD_PCT,
    RISK_LABELS,
)
from agents.scanner.models.schemas import (
    BytecodeAnalysis,
    CrossChainThreat,
    FeeAnalysis,
    LiquidityAnalysis,
    SocialAnalysis,
    ThreatCategory,
)


def _clamp(score: float) -> float:
    return max(0.0, min(100.0, score))


def bytecode_safety(analysis: BytecodeAnalysis) -> float:
    score = 100
    if analysis.has_mint_function:
        score -= 40 if not analysis.access_controls else 10
    if analysis.proxy_pattern:
        score -= 15
    if analysis.upgrade_pattern:
        score -= 20
    if analysis.has_self_destruct:
        score -= 20
    if analysis.has_freeze_authority:
        score -= 15
    if analysis.hidden_functions:
        score -= 25
    if analysis.time_locks:
        score += 5
    if analysis.access_controls:
        score += 5
    if analysis.contract_size > 50_000:
        score -= 5
    if analysis.function_count > 100:
        score -= 5
    if analysis.similarity_matches:
        closest = max(m.similarity_score for m in analysis.similarity_matches)
        if closest > 0.8:
            score -= 50
        elif closest > 0.5:
            score -= 25
    return _clamp(score)


def social_safety(analysis: SocialAnalysis, now: datetime | None = None) -> float:
    now = now or datetime.now(timezone.utc)
    score = 50

    if analysis.twitter_handle:
        if analysis.twitter_verified:
            score += 15
        if analysis.twitter_followers > 10_000:
            score += 10
        elif analysis.twitter_followers > 1_000:
            score += 5
        if analysis.twitter_created is not None:
            age_days = (now - analysis.twitter_created).days
            if age_days > 365:
                score += 10
            elif age_days < 30:
                score -= 15
    else:
        score -= 10

    if analysis.github_repo:
        if analysis.github_commits > 50:
            score += 15
        elif analysis.github_commits > 10:
            score += 5
        if analysis.github_contributors > 5:
            score += 10
    else:
        score -= 5

    if analysis.website_domain and analysis.domain_age_days is not None:
        if analysis.domain_age_days > 365:
            score += 10
        elif analysis.domain_age_days < 30:
            score -= 10

    if analysis.telegram_group:
        if analysis.telegram_members > 5_000:
            score += 10
        elif analysis.telegram_members > 1_000:
            score += 5
        elif analysis.telegram_members < 100:
            score -= 5

    score -= len(analysis.social_red_flags) * 10

    if analysis.community_sentiment == "positive":
        score += 10
    elif analysis.community_sentiment == "negative":
        score -= 15
    return _clamp(score)


def liquidity_safety(analysis: LiquidityAnalysis) -> float:
    score = 50.0
    total = analysis.total_liquidity_usd
    if total > 1_000_000:
        score += 25
    elif total > 100_000:
        score += 15
    elif total > 10_000:
        score += 5
    elif total < 1_000:
        score -= 20

    if analysis.liquidity_locked:
        score += 20
        if analysis.lock_duration_days and analysis.lock_duration_days > 365:
            score += 10
        elif analysis.lock_duration_days and analysis.lock_duration_days < 30:
            score -= 5
        if analysis.lock_percentage > 80:
            score += 10
    else:
        score -= 25

    top = max((h.percentage for h in analysis.major_holders if not h.is_known_exchange), default=0.0)
    if top > 50:
        score -= 20
    elif top > 20:
        score -= 10
    if any(h.is_known_exchange for h in analysis.major_holders):
        score += 10

    score += (analysis.liquidity_stability_score - 50) * 0.5
    score -= len(analysis.rug_pull_indicators) * 10
    return _clamp(score)


def fee_safety(analysis: FeeAnalysis) -> float:
    if analysis.honeypot_detected:
        return 0.0
    score = 100
    max_fee = analysis.max_fee_percentage
    if max_fee > 20:
        score -= 40
    elif max_fee > 10:
        score -= 25
    elif max_fee > 5:
        score -= 10
    if analysis.hidden_fees:
        score -= 20
    if analysis.hidden_fees_likely:
        score -= 10
    if abs(analysis.buy_fee_percentage - analysis.sell_fee_percentage) > 5:
        score -= 15
    if "blacklist" in analysis.anti_bot_mechanisms:
        score -= 10
    if any(period > 300 for period in analysis.cooldown_periods):
        score -= 15
    if analysis.sandwich_protection:
        score += 5
    return _clamp(score)


def cross_chain_safety(threats: list[CrossChainThreat]) -> float:
    score = 100
    for threat in threats:
        if threat.confidence_score > 0.8:
            score -= 30
        elif threat.confidence_score > 0.5:
            score -= 15
        else:
            score -= 5
    return _clamp(score)


def threat_categories(
    bytecode: BytecodeAnalysis | None = None,
    fee: FeeAnalysis | None = None,
    liquidity: LiquidityAnalysis | None = None,
    social: SocialAnalysis | None = None,
    cross_chain: list[CrossChainThreat] | None = None,
) -> list[ThreatCategory]:
    categories = []
    if fee is not None:
        if fee.honeypot_detected:
            categories.append(ThreatCategory.HONEYPOT)
        if fee.max_fee_percentage > HIDDEN_FEE_THRESHOLD_PCT:
            categories.append(ThreatCategory.HIGH_FEES)
    if bytecode is not None:
        if bytecode.unrestricted_mint:
            categories.append(ThreatCategory.MINT_AUTHORITY)
        if bytecode.has_self_destruct:
            categories.append(ThreatCategory.SELF_DESTRUCT)
        if bytecode.proxy_pattern or bytecode.upgrade_pattern:
            categories.append(ThreatCategory.PROXY_CONTRACT)
        if bytecode.has_freeze_authority:
            categories.append(ThreatCategory.FREEZE_AUTHORITY)
    if liquidity is not None and liquidity.rug_pull_indicators:
        categories.append(ThreatCategory.RUG_PULL)
    if social is not None and social.social_red_flags:
        categories.append(ThreatCategory.SOCIAL_RED_FLAG)
    if cross_chain:
        categories.append(ThreatCategory.CROSS_CHAIN_THREAT)
    return categories


def score(
    bytecode: BytecodeAnalysis | None = None,
    fee: FeeAnalysis | None = None,
    liquidity: LiquidityAnalysis | None = None,
    social: SocialAnalysis | None = None,
    cross_chain: list[CrossChainThreat] | None = None,
) -> tuple[int, list[ThreatCategory]]:
    """Risk score (0 safest, 100 most dangerous) and threat categories.

    Components passed as None are unavailable and excluded from the weighting.
    An empty cross_chain list is a present component with no threats.
    """
    safety: dict[str, float] = {}
    if bytecode is not None:
        safety["bytecode"] = bytecode_safety(bytecode)
    if social is not None:
        safety["social"] = social_safety(social)
    if liquidity is not None:
        safety["liquidity"] = liquidity_safety(liquidity)
    if fee is not None:
        safety["fees"] = fee_safety(fee)
    if cross_chain is not None:
        safety["cross_chain"] = cross_chain_safety(cross_chain)

    risk = 0
    if safety:
        total_weight = sum(SCORING_WEIGHTS[k] for k in safety)
        weighted = sum(s * SCORING_WEIGHTS[k] for k, s in safety.items()) / total_weight
        risk = round(100 - weighted)

    if fee is not None and fee.honeypot_detected:
        risk = max(risk, HONEYPOT_RISK_FLOOR)
    if bytecode is not None and bytecode.unrestricted_mint:
        risk = max(risk, UNRESTRICTED_MINT_RISK_FLOOR)

    risk = int(max(0, min(100, risk)))
    return risk, threat_categories(bytecode, fee, liquidity, social, cross_chain)


def risk_label(risk_score: int | None) -> str | None:
    if risk_score is None:
        return None
    for label, (low, high) in RISK_LABELS.items():
        if low <= risk_score <= high:
            return label
    return "critical" if risk_score > 100 else "safe"


def explain(
    risk_score: int,
    bytecode: BytecodeAnalysis | None = None,
    fee: FeeAnalysis | None = None,
    liquidity: LiquidityAnalysis | None = None,
    social: SocialAnalysis | None = None,
    cross_chain: list[CrossChainThreat] | None = None,
) -> list[str]:
    """Human-readable reasons behind a score, most severe first."""
    reasons = [f"{risk_label(risk_score)} ({risk_score}/100)"]
    if fee is not None and fee.honeypot_detected:
        reasons.append("Honeypot detected: sells are blocked or confiscated")
    if bytecode is not None and bytecode.unrestricted_mint:
        reasons.append("Unrestricted mint capability")
    if bytecode is not None and bytecode.has_self_destruct:
        reasons.append("Contract can self-destruct")
    if fee is not None and fee.max_fee_percentage > HIDDEN_FEE_THRESHOLD_PCT:
        reasons.append(f"High transaction fees ({fee.max_fee_percentage:.1f}%)")
    if liquidity is not None and not liquidity.liquidity_locked:
        reasons.append("Liquidity not locked: rug pull risk")
    if social is not None and social.social_red_flags:
        reasons.append(f"{len(social.social_red_flags)} social red flags detected")
    if cross_chain:
        chains = ", ".join(sorted({t.chain for t in cross_chain}))
        reasons.append(f"Creator linked to high-risk tokens on {chains}")
    return reasons
