import asyncio
import json
import httpx
from agents.scanner.models.schemas import TokenMetadata
from agents.scanner.services.fees import analyze_fees, simulate_trade, solana_transfer_fee
from fakes import TOKEN, mock_client, offline_handler

FEE_CODE = "0x638ee88c53" + "cooldown".encode("utf-8").hex()


def honeypot_handler(payload: dict):
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.params["address"] == TOKEN
        return httpx.Response(200, json=payload)
    return handler


def test_simulation_reports_honeypot(ethereum):
    payload = {
        "honeypotResult": {"isHoneypot": True},
        "simulationResult": {"buyTax": 5, "sellTax": 99, "transferTax": 0},
    }

    async def run():
        async with mock_client(honeypot_handler(payload)) as client:
            return await analyze_fees(TOKEN, TokenMetadata(raw_code="0x6000"), ethereum, client)

    fees = asyncio.run(run())
    assert fees.simulated
    assert fees.honeypot_detected
    assert fees.sell_fee_percentage == 99
    assert fees.max_fee_percentage == 99
    assert fees.hidden_fees
    assert not fees.hidden_fees_likely


def test_clean_simulation(ethereum):
    payload = {"honeypotResult": {"isHoneypot": False}, "simulationResult": {"buyTax": 1, "sellTax": 2}}

    async def run():
        async with mock_client(honeypot_handler(payload)) as client:
            return await analyze_fees(TOKEN, TokenMetadata(raw_code="0x6000"), ethereum, client)

    fees = asyncio.run(run())
    assert not fees.honeypot_detected
    assert fees.max_fee_percentage == 2
    assert not fees.hidden_fees
    assert fees.anti_bot_mechanisms == ()


def test_simulation_outage_falls_back_to_markers(ethereum):
    async def run():
        async with mock_client(offline_handler) as client:
            assert await simulate_trade(client, TOKEN, ethereum.chain_id) is None
            return await analyze_fees(TOKEN, TokenMetadata(raw_code=FEE_CODE), ethereum, client)

    fees = asyncio.run(run())
    assert not fees.simulated
    assert not fees.honeypot_detected
    assert fees.hidden_fees_likely
    assert fees.max_fee_percentage == 0
    assert fees.anti_bot_mechanisms == ("cooldown",)
    assert fees.cooldown_periods == (60,)


def test_solana_transfer_fee_extension(solana):
    extensions = {"transferFeeConfig": {"newerTransferFee": {"transferFeeBasisPoints": 1500}}}
    raw = json.dumps({"authorities": {}, "extensions": extensions, "data": ""})

    async def run():
        async with mock_client(offline_handler) as client:
            return await analyze_fees("Mint1111", TokenMetadata(raw_code=raw, extensions=extensions), solana, client)

    fees = asyncio.run(run())
    assert fees.transfer_fee_percentage == 15.0
    assert fees.hidden_fees
    assert fees.hidden_fees_likely
    assert not fees.simulated


def test_solana_transfer_fee_helper():
    assert solana_transfer_fee({}) == 0.0
    assert solana_transfer_fee({"transferFeeConfig": {"olderTransferFee": {"transferFeeBasisPoints": 250}}}) == 2.5
