"""
Threat Scanner Agent — FastAPI application (port 8010)

Scans token contracts across EVM chains and Solana for honeypots, hidden fees,
mint/freeze authorities, rug pull setups and thin social footprints, then signs
and pins every result.

Interfaces: HTTP API
"""
from contextlib import asynccontextmanager
from fastapi import FastAPI
from shared.database import init_models
from shared.networks import get_all_networks
from shared.utils.logging import setup_logging
from agents.scanner.routes.api import router
from agents.scanner.services.orchestrator import close_scanner, get_scanner
import structlog

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    logger.info("scanner_agent_starting", interfaces=["api"], networks=len(get_all_networks()))
    await init_models()
    get_scanner()

    yield

    await close_scanner()
    logger.info("scanner_agent_stopped")


app = FastAPI(
    title="Threat Scanner Agent",
    description="Multi-chain token threat scanner: bytecode patterns, fee simulation, "
                "liquidity and social analysis, with signed, content-addressed results.",
    version="1.0.0",
    lifespan=lifespan,
)

app.include_router(router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("agents.scanner.main:app", host="0.0.0.0", port=8010, reload=True)
