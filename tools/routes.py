"""HTTP API routes served alongside the MCP endpoint"""

import json
import logging
from typing import Any, Dict

from mcp.server.fastmcp import FastMCP
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from managers.mint_manager import MintManager
from models.errors import InvalidRequest
from tools.helpers import (
    INVALID_PUNK_ID,
    image_view,
    inscription_detail,
    inscription_index_view,
    mint_state_view,
    outcome_to_response,
    parse_punk_id,
    program_info,
    run_view,
)

logger = logging.getLogger("X1Punks")

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}


def json_response(body: Dict[str, Any], status_code: int = 200) -> JSONResponse:
    return JSONResponse(body, status_code=status_code, headers=CORS_HEADERS)


def view_response(view, *args) -> JSONResponse:
    body = run_view(view, *args)
    return json_response(body, 500 if "error" in body else 200)


def register_routes(mcp: FastMCP, manager: MintManager):
    """Register the /api/* HTTP routes with the MCP server"""

    @mcp.custom_route("/api/inscribe", methods=["POST", "OPTIONS"])
    async def inscribe(request: Request) -> Response:
        if request.method == "OPTIONS":
            return Response(status_code=200, headers=CORS_HEADERS)
        try:
            data = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            return json_response({"error": "Invalid JSON body"}, 400)
        if not isinstance(data, dict):
            return json_response({"error": "Invalid JSON body"}, 400)

        try:
            outcome = await manager.mint(data.get("wallet"), data.get("quantity"), data.get("txSignature"))
        except InvalidRequest as e:
            return json_response({"error": str(e)}, 400)
        except Exception as e:
            logger.exception("Server error")
            return json_response({"error": f"Server error: {e}"}, 500)

        status_code, body = outcome_to_response(outcome)
        return json_response(body, status_code)

    @mcp.custom_route("/api/mints", methods=["GET"])
    async def mints(request: Request) -> Response:
        return view_response(mint_state_view, manager)

    @mcp.custom_route("/api/inscriptions", methods=["GET"])
    async def inscriptions(request: Request) -> Response:
        return view_response(inscription_index_view, manager)

    @mcp.custom_route("/api/program", methods=["GET"])
    async def program(request: Request) -> Response:
        return view_response(program_info, manager)

    @mcp.custom_route("/api/inscription/{punk_id}", methods=["GET"])
    async def inscription(request: Request) -> Response:
        punk_id = parse_punk_id(request.path_params.get("punk_id"), manager.settings.total_supply)
        if punk_id is None:
            return json_response({"error": INVALID_PUNK_ID}, 400)
        return view_response(inscription_detail, manager, punk_id)

    @mcp.custom_route("/api/image/{punk_id}", methods=["GET"])
    async def image(request: Request) -> Response:
        punk_id = parse_punk_id(request.path_params.get("punk_id"), manager.settings.total_supply)
        if punk_id is None:
            return json_response({"error": INVALID_PUNK_ID}, 400)
        return view_response(image_view, manager, punk_id)

    logger.info("Registered HTTP routes under /api")
