"""
Fee & Honeypot Simulator — buy/sell/transfer tax and honeypot detection.

EVM tokens go through the honeypot.is simulation service; when it is down the
result degrades to marker heuristics (hidden_fees_likely). Solana fees come
from the token-2022 transferFeeConfig extension.
"""
import httpx
from shared.config import settings
from shared.networks import NetworkConfig
from agents.scanner.config import HIDDEN_FEE_THRESHOLD_PCT, DEFAULT_COOLDOWN_SECONDS, PROVIDER_TIMEOUT_SECONDS
from agents.scanner.models.schemas import FeeAnalysis, TokenMetadata
from agents.scanner.services.bytecode import match_markers
import structlog

logger = structlog.get_logger()


def _pct(value) -> float:
    try:
        return max(float(value or 0), 0.0)
    except (TypeError, ValueError):
        return 0.0


async def simulate_trade(client: httpx.AsyncClient, address: str, chain_id: int) -> dict | None:
    """Ask honeypot.is to simulate a buy and a sell. None when the service fails."""
    try:
        resp = await client.get(
            settings.HONEYPOT_API_URL,
            params={"address": address, "chainID": chain_id},
            timeout=PROVIDER_TIMEOUT_SECONDS,
        )
        resp.raise_for_status()
        data = resp.json()
    except (httpx.HTTPError, ValueError) as e:
        logger.warning("honeypot_simulation_failed", service="honeypot.is", address=address, error=str(e))
        return None

    honeypot = data.get("honeypotResult") or {}
    simulation = data.get("simulationResult") or {}
    return {
        "is_honeypot": bool(honeypot.get("isHoneypot", False)),
        "buy_tax": _pct(simulation.get("buyTax")),
        "sell_tax": _pct(simulation.get("sellTax")),
        "transfer_tax": _pct(simulation.get("transferTax")),
    }


def solana_transfer_fee(extensions: dict) -> float:
    """Transfer fee percentage from a token-2022 transferFeeConfig extension."""
    config = extensions.get("transferFeeConfig")
    if not config:
        return 0.0
    current = config.get("newerTransferFee") or config.get("olderTransferFee") or {}
    return _pct(current.get("transferFeeBasisPoints")) / 100


async def analyze_fees(
    address: str,
    metadata: TokenMetadata,
    network: NetworkConfig,
    client: httpx.AsyncClient,
    patterns: dict | None = None,
) -> FeeAnalysis:
    family = network.family
    anti_bot = match_markers(metadata.raw_code, family, "anti_bot", patterns)
    fee_markers = match_markers(metadata.raw_code, family, "fee_markers", patterns)

    buy = sell = transfer = 0.0
    honeypot = False
    simulated = False
    hidden_likely = False

    if family == "evm":
        result = await simulate_trade(client, address, network.chain_id)
        if result is not None:
            simulated = True
            honeypot = result["is_honeypot"]
            buy, sell, transfer = result["buy_tax"], result["sell_tax"], result["transfer_tax"]
        else:
            hidden_likely = bool(fee_markers)
    elif family == "solana":
        transfer = solana_transfer_fee(metadata.extensions)
        hidden_likely = bool(fee_markers)

    max_fee = max(buy, sell, transfer)
    mechanisms = [m for m in anti_bot if m != "sandwich_protection"]

    analysis = FeeAnalysis(
        buy_fee_percentage=buy,
        sell_fee_percentage=sell,
        transfer_fee_percentage=transfer,
        max_fee_percentage=max_fee,
        honeypot_detected=honeypot,
        hidden_fees=max_fee > HIDDEN_FEE_THRESHOLD_PCT,
        hidden_fees_likely=hidden_likely,
        anti_bot_mechanisms=mechanisms,
        sandwich_protection="sandwich_protection" in anti_bot,
        cooldown_periods=[DEFAULT_COOLDOWN_SECONDS] if "cooldown" in anti_bot else [],
        simulated=simulated,
    )
    logger.info(
        "fees_analyzed",
        chain=network.id,
        address=address,
        honeypot=honeypot,
        max_fee=max_fee,
        simulated=simulated,
    )
    return analysis
