"""
StatBridge - Streaming research chat with statistics lookup
FastAPI Backend with model streaming + MCP search tools
"""

from contextlib import asynccontextmanager
from typing import Any, Dict
import logging

import httpx
from fastapi import Body, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from routers import chat
from logging_config import setup_logging
from config import runtime_config, __version__
from services.mcp_session import RPCSessionClient, Session
from services.search_dispatcher import SearchDispatcher
from services.theme_extractor import ThemeExtractor

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown events"""
    # Startup: one HTTP client and one search session shared by every connection
    http_client = httpx.AsyncClient(timeout=httpx.Timeout(runtime_config.rpc_timeout, connect=runtime_config.connect_timeout))
    session = Session()
    rpc_client = RPCSessionClient(session, http_client)

    app.state.http_client = http_client
    app.state.session = session
    app.state.rpc_client = rpc_client
    app.state.dispatcher = SearchDispatcher(rpc_client)
    app.state.theme_extractor = ThemeExtractor()

    if await rpc_client.configure(runtime_config.mcp_endpoint, runtime_config.mcp_api_key):
        logger.info("Statistics search session ready")
    elif not runtime_config.mcp_configured:
        logger.warning("STATISTA_MCP_API_KEY not set - statistics search disabled until configured")
    else:
        logger.warning("Statistics search handshake failed - will retry on first use")

    if not runtime_config.anthropic_api_key:
        logger.warning("ANTHROPIC_API_KEY not set - chat will report a configuration error")

    yield

    # Shutdown
    await http_client.aclose()
    logger.info("StatBridge signing off")


app = FastAPI(
    title="StatBridge",
    description="Streaming research chat backed by statistics search",
    version=__version__,
    lifespan=lifespan,
)

# CORS - restrict to localhost on port 3000
app.add_middleware(
    CORSMiddleware,
    allow_origin_regex=r"^https?://(localhost|127\.0\.0\.1):3000$",
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Chat router is mounted WITHOUT /api prefix so WebSocket is at /ws/chat
app.include_router(chat.router, tags=["chat"])


@app.get("/health")
async def health():
    """Health check - reports search session and model configuration."""
    session: Session = app.state.session
    checks = {
        "search_session": "ok" if session.initialized else "down",
        "model": "ok" if runtime_config.anthropic_api_key else "unconfigured",
    }
    all_ok = all(v == "ok" for v in checks.values())
    return {
        "status": "healthy" if all_ok else "degraded",
        "service": "statbridge",
        "version": __version__,
        "checks": checks,
        "session_token": session.has_token,
    }


@app.get("/api/config")
async def get_runtime_config():
    """Current runtime configuration (secrets reported as set/unset)."""
    return runtime_config.to_dict()


@app.put("/api/config")
async def update_runtime_config(changes: Dict[str, Any] = Body(...)):
    """Adjust runtime configuration. Search endpoint/key changes re-run the handshake."""
    result = runtime_config.update(**changes)
    if {"mcp_endpoint", "mcp_api_key"} & set(result["updated"]):
        rpc_client: RPCSessionClient = app.state.rpc_client
        result["search_session"] = await rpc_client.configure(runtime_config.mcp_endpoint, runtime_config.mcp_api_key)
    return result


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000, ws_max_size=1048576)  # 1MB WS frame limit
