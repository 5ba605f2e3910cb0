"""HTTP bridge forwarding REST calls to the stdio tool server."""

import json
import logging
import os
import sys
from contextlib import AsyncExitStack, asynccontextmanager
from typing import Any, Dict, List, Optional

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from mcp import ClientSession, StdioServerParameters
from mcp.client.stdio import stdio_client
from pydantic import BaseModel

from photos_mcp import __version__

logger = logging.getLogger(__name__)


class ToolCallRequest(BaseModel):
    toolName: Optional[str] = None
    arguments: Dict[str, Any] = {}


class ExchangeCodeRequest(BaseModel):
    code: Optional[str] = None


def extract_text(result: Any) -> str:
    """Return the first text block of a tool result, or an empty string."""
    for item in getattr(result, "content", None) or []:
        if getattr(item, "type", None) == "text":
            return item.text or ""
    return ""


def parse_result(result_text: str) -> Dict[str, Any]:
    """Decode a tool payload, turning non-JSON text into an error payload."""
    try:
        data = json.loads(result_text)
    except ValueError:
        logger.error("Failed to parse result as JSON: %s", result_text[:200])
        return {"error": "Invalid response format", "details": result_text, "success": False}
    if not isinstance(data, dict):
        return {"error": "Invalid response format", "details": result_text, "success": False}
    return data


def is_error_payload(data: Dict[str, Any]) -> bool:
    return bool(data.get("error")) and not data.get("success", False)


class StdioToolClient:
    """Keeps one MCP session open to a tool server subprocess."""

    def __init__(self, command: str, args: List[str], env: Optional[Dict[str, str]] = None):
        self.params = StdioServerParameters(command=command, args=args, env=env)
        self.session: Optional[ClientSession] = None
        self._stack: Optional[AsyncExitStack] = None

    async def start(self) -> None:
        """Spawn the tool server and initialize the session."""
        self._stack = AsyncExitStack()
        read_stream, write_stream = await self._stack.enter_async_context(stdio_client(self.params))
        self.session = await self._stack.enter_async_context(ClientSession(read_stream, write_stream))
        await self.session.initialize()
        logger.info("MCP client connected successfully")

    async def call_tool(self, name: str, arguments: Dict[str, Any]) -> Dict[str, Any]:
        """Call a tool and decode its JSON payload."""
        if self.session is None:
            await self.start()
        result = await self.session.call_tool(name, arguments)
        return parse_result(extract_text(result))

    async def close(self) -> None:
        if self._stack is not None:
            await self._stack.aclose()
        self._stack = None
        self.session = None


def tool_server_client(credentials_path: str, token_path: str) -> StdioToolClient:
    """Build a client that runs ``python -m photos_mcp serve`` in a subprocess."""
    return StdioToolClient(
        command=sys.executable,
        args=[
            "-m", "photos_mcp",
            "--credentials", credentials_path,
            "--tokens", token_path,
            "serve",
        ],
        env=dict(os.environ),
    )


def _error(status_code: int, error: str, details: Any = None, **extra: Any) -> JSONResponse:
    content: Dict[str, Any] = dict(extra)
    content["error"] = error
    if details is not None:
        content["details"] = details
    return JSONResponse(content, status_code=status_code)


def create_app(tools: Any) -> FastAPI:
    """Build the bridge application around a tool client.

    Args:
        tools: Object with async ``start``, ``call_tool`` and ``close``
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await tools.start()
        try:
            yield
        finally:
            logger.info("Shutting down HTTP bridge...")
            await tools.close()

    app = FastAPI(title="Google Photos MCP HTTP Bridge", version=__version__, lifespan=lifespan)
    app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])

    @app.get("/health")
    async def health() -> Dict[str, Any]:
        return {"ok": True}

    @app.post("/call-tool")
    async def call_tool(request: ToolCallRequest):
        if not request.toolName:
            return _error(400, "Tool name is required")

        logger.info("Received tool call: %s", request.toolName)
        try:
            data = await tools.call_tool(request.toolName, request.arguments or {})
        except Exception as e:
            logger.exception("Error calling tool %s", request.toolName)
            return _error(500, "Failed to call tool", str(e), success=False)

        if is_error_payload(data):
            logger.error("Tool call failed: %s", data["error"])
            return _error(500, data["error"], data.get("details") or data["error"], success=False)

        if "count" in data:
            logger.info("Item count: %s", data["count"])
        return {"success": True, "data": data}

    @app.get("/auth-status")
    async def auth_status():
        try:
            status = await tools.call_tool("get_auth_status", {})
        except Exception as e:
            logger.exception("Error checking auth status")
            return _error(500, "Failed to check authentication status", str(e),
                          isAuthenticated=False)

        if status.get("error"):
            return {"isAuthenticated": False, "error": status["error"]}
        return status

    async def _simple(tool: str, arguments: Dict[str, Any], failure: str):
        try:
            data = await tools.call_tool(tool, arguments)
        except Exception as e:
            logger.exception("%s", failure)
            return _error(500, failure, str(e))

        if data.get("error"):
            return _error(500, data["error"], data.get("details") or data["error"])
        return data

    @app.get("/auth-url")
    async def auth_url():
        return await _simple("get_auth_url", {}, "Failed to get authentication URL")

    @app.post("/exchange-code")
    async def exchange_code(request: ExchangeCodeRequest):
        if not request.code:
            return _error(400, "Authorization code is required")
        return await _simple("exchange_auth_code", {"code": request.code},
                             "Failed to exchange authorization code")

    @app.post("/revoke")
    async def revoke():
        return await _simple("revoke_auth", {}, "Failed to revoke authentication")

    return app


def run_bridge(credentials_path: str, token_path: str, host: str = "127.0.0.1",
               port: int = 3001) -> None:
    """Serve the bridge with uvicorn until interrupted."""
    app = create_app(tool_server_client(credentials_path, token_path))
    logger.info("Google Photos MCP HTTP Bridge running on port %d", port)
    uvicorn.run(app, host=host, port=port)
