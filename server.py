import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from functools import partial
from typing import AsyncIterator

from mcp.server.fastmcp import FastMCP

from ledger_client import LedgerClient, load_payer_keypair
from managers.config_manager import Settings, load_settings
from managers.mint_manager import MintManager
from models.errors import PersistenceFailure
from tools.inscription import register_inscription_tools
from tools.routes import register_routes

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("X1Punks")

settings = load_settings()
ledger_client = LedgerClient(
    settings.rpc_url,
    partial(load_payer_keypair, settings.wallet_file),
    commitment=settings.commitment,
    use_memo=settings.use_memo,
    timeout=settings.request_timeout,
)
mint_manager = MintManager(settings, ledger_client)


@dataclass
class AppContext:
    settings: Settings
    mint_manager: MintManager


@asynccontextmanager
async def app_lifespan(server: FastMCP) -> AsyncIterator[AppContext]:
    """Manage application lifecycle"""
    logger.info(f"Starting {settings.program_name} server lifecycle...")
    try:
        try:
            pending = mint_manager.mint_state.pending_ids()
        except PersistenceFailure as e:
            logger.error(f"Mint state unavailable, inscriptions will be refused: {e}")
            pending = set()
        if pending:
            logger.warning(f"{len(pending)} inscriptions pending; run resume_pending_inscriptions to finish them")
        yield AppContext(settings=settings, mint_manager=mint_manager)
    finally:
        logger.info("Shutting down server")


mcp = FastMCP(
    "X1_Punks_Inscription_Server",
    lifespan=app_lifespan,
    host=settings.host,
    port=settings.port,
)

register_inscription_tools(mcp, mint_manager)
register_routes(mcp, mint_manager)


def main():
    logger.info(f"{settings.program_name} server")
    logger.info(f"  Network: {settings.rpc_url}")
    logger.info(f"  Supply:  {settings.total_supply}")
    try:
        logger.info(f"  Minted:  {mint_manager.mint_state.minted_count}")
    except PersistenceFailure as e:
        logger.error(f"  Minted:  unavailable ({e})")
    logger.info(f"  URL:     http://{settings.host}:{settings.port}")
    mcp.run(transport="streamable-http")


if __name__ == "__main__":
    main()
