"""Inscription tools: batch minting, resume and read-only reporting"""

import asyncio
import logging

from mcp.server.fastmcp import FastMCP

from managers.mint_manager import MintManager
from models.errors import InvalidRequest
from tools.helpers import (
    INVALID_PUNK_ID,
    inscription_detail,
    inscription_index_view,
    mint_state_view,
    outcome_to_response,
    parse_punk_id,
    program_info,
    run_view,
    verify_archive,
)

logger = logging.getLogger("X1Punks")


def register_inscription_tools(mcp: FastMCP, manager: MintManager):
    """Register inscription tools with the MCP server"""

    @mcp.tool()
    async def inscribe_punks(wallet: str, quantity: int, tx_signature: str) -> dict:
        """Mint and fully inscribe random unminted punks to a wallet.

        Each punk is minted, its JSON metadata and PNG image are stored in
        on-chain data accounts, and a link transaction ties them together.
        Punks are processed one at a time; the batch stops at the first failure.

        Args:
            wallet: Recipient wallet address
            quantity: Number of punks to inscribe (1-10)
            tx_signature: Signature of the payment transaction

        Returns:
            Dict with:
            - success, minted, totalMinted on full success
            - partial, requested, completed and error when the batch stopped early
            - error (and punkId) when nothing was inscribed
        """
        try:
            outcome = await manager.mint(wallet, quantity, tx_signature)
        except InvalidRequest as e:
            return {"error": str(e)}
        except Exception as e:
            logger.exception("Inscription request failed")
            return {"error": f"Server error: {e}"}
        _, body = outcome_to_response(outcome)
        return body

    @mcp.tool()
    async def resume_pending_inscriptions() -> dict:
        """Finish inscriptions that were reserved or interrupted part-way.

        Each pending punk continues from its last confirmed step and is
        delivered to the wallet recorded when it was reserved.
        """
        try:
            outcome = await manager.resume_pending()
        except Exception as e:
            logger.exception("Resuming pending inscriptions failed")
            return {"error": f"Server error: {e}"}
        _, body = outcome_to_response(outcome)
        return body

    @mcp.tool()
    def get_mint_state() -> dict:
        """Get minted count, total supply and every mint record."""
        return run_view(mint_state_view, manager)

    @mcp.tool()
    def get_inscription_index() -> dict:
        """Get the inscription index with on-chain provenance for every punk."""
        return run_view(inscription_index_view, manager)

    @mcp.tool()
    def get_inscription(punk_id: int, include_image: bool = False) -> dict:
        """Get metadata, image info and on-chain provenance for one punk.

        Args:
            punk_id: Punk id (0 to total supply - 1)
            include_image: Include the PNG as a base64 data URI
        """
        parsed = parse_punk_id(punk_id, manager.settings.total_supply)
        if parsed is None:
            return {"error": INVALID_PUNK_ID}
        return run_view(inscription_detail, manager, parsed, include_image=include_image)

    @mcp.tool()
    def get_program_info() -> dict:
        """Get program, collection and chain info with current counts."""
        return run_view(program_info, manager)

    @mcp.tool()
    async def verify_archived_image(punk_id: int) -> dict:
        """Check that the archived image of an inscribed punk matches its on-chain hash.

        Returns:
            Dict with url, matches, expected_hash, actual_hash, bytes_size, or error
        """
        parsed = parse_punk_id(punk_id, manager.settings.total_supply)
        if parsed is None:
            return {"error": INVALID_PUNK_ID}
        try:
            return await asyncio.to_thread(verify_archive, manager, parsed)
        except Exception as e:
            logger.exception(f"Verification failed for punk #{parsed}")
            return {"error": str(e)}
