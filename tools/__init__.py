"""MCP tools and HTTP routes for the X1 Punks inscription server"""

from tools.inscription import register_inscription_tools
from tools.routes import register_routes

__all__ = ["register_inscription_tools", "register_routes"]
