"""Web 应用入口"""

import uvicorn
from fastapi import FastAPI

from devmux.config import Settings
from devmux.runtime import DevmuxContext, build_context
from devmux.telemetry import get_logger
from devmux.web.server import CompanionServer

logger = get_logger(__name__)


def create_app(ctx: DevmuxContext | None = None) -> FastAPI:
    """创建 FastAPI 应用（测试可注入上下文）"""
    if ctx is None:
        ctx = build_context(Settings(), headless=True)
    return CompanionServer(ctx).app


async def start_server(ctx: DevmuxContext, host: str | None = None, port: int | None = None) -> None:
    host = host or ctx.settings.server_host
    port = port or ctx.settings.server_port
    server = CompanionServer(ctx)

    uvicorn_config = uvicorn.Config(server.app, host=host, port=port, log_level="info")
    uvicorn_server = uvicorn.Server(uvicorn_config)

    logger.info(f"[Server] devmux API at http://{host}:{port}")
    await uvicorn_server.serve()
