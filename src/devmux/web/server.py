"""伴随控制 API（本地 JSON 接口）"""

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from devmux import config
from devmux.desktop.tiling import position_names, resolve_position
from devmux.errors import DevmuxError, SessionNotFound, TargetResolutionError
from devmux.models import ProjectInfo
from devmux.project.resolver import load_project_config
from devmux.runtime import DevmuxContext
from devmux.telemetry import get_logger

logger = get_logger(__name__)


class RestartRequest(BaseModel):
    """restart 请求体"""

    target: str | None = None  # pane 名称或 0-based 索引，默认第一个


class TileRequest(BaseModel):
    """tile 请求体"""

    position: str


class ActionResponse(BaseModel):
    success: bool
    message: str


class CompanionServer:
    """FastAPI 应用，所有路由共享一个 DevmuxContext"""

    def __init__(self, ctx: DevmuxContext):
        self.ctx = ctx
        self.app = FastAPI(title="devmux")
        self._setup_routes()

    async def _project(self, name: str) -> ProjectInfo:
        project = await self.ctx.scanner.find(name)
        if project is None:
            raise HTTPException(status_code=404, detail=f'Unknown project "{name}"')
        return project

    def _setup_routes(self):
        app = self.app

        @app.get("/api/projects")
        async def list_projects():
            return [p.to_dict() for p in await self.ctx.scanner.scan()]

        @app.get("/api/sessions")
        async def list_sessions():
            return await self.ctx.orchestrator.list_sessions()

        @app.post("/api/projects/{name}/navigate")
        async def navigate(name: str):
            project = await self._project(name)
            result = await self.ctx.navigation.navigate_to_window(project.session_name)
            return result.to_dict()

        @app.post("/api/projects/{name}/sync")
        async def sync(name: str):
            project = await self._project(name)
            try:
                report = await self.ctx.orchestrator.sync(load_project_config(project.path))
            except DevmuxError as e:
                raise HTTPException(status_code=409, detail=str(e)) from e
            return report.to_dict()

        @app.post("/api/projects/{name}/restart")
        async def restart(name: str, request: RestartRequest):
            project = await self._project(name)
            try:
                result = await self.ctx.orchestrator.restart_pane(
                    load_project_config(project.path), request.target
                )
            except TargetResolutionError as e:
                raise HTTPException(
                    status_code=400,
                    detail={"message": str(e), "valid_targets": e.valid_targets},
                ) from e
            except SessionNotFound as e:
                raise HTTPException(status_code=404, detail=str(e)) from e
            except DevmuxError as e:
                raise HTTPException(status_code=409, detail=str(e)) from e
            return result.to_dict()

        @app.post("/api/projects/{name}/tile", response_model=ActionResponse)
        async def tile(name: str, request: TileRequest):
            project = await self._project(name)
            position = resolve_position(request.position)
            if position is None:
                raise HTTPException(
                    status_code=400,
                    detail={
                        "message": f'Unknown position "{request.position}"',
                        "positions": position_names(),
                    },
                )
            ok = await self.ctx.tiler.tile(project.session_name, self.ctx.terminal, position)
            return ActionResponse(success=ok, message=f"{project.name} -> {position.name}")

        @app.post("/api/projects/{name}/open", response_model=ActionResponse)
        async def open_project(name: str):
            """Focus the project's window, or open a terminal running devmux in it."""
            project = await self._project(name)
            terminal = self.ctx.terminal
            if await self.ctx.orchestrator.session_exists(project.session_name):
                ok = await terminal.focus_or_attach(project.session_name)
                return ActionResponse(success=ok, message=f"Focused {project.session_name}")
            ok = await terminal.launch(config.CLI_NAME, project.path)
            return ActionResponse(success=ok, message=f"Opened {project.name} in {terminal.name}")

        @app.post("/api/projects/{name}/detach", response_model=ActionResponse)
        async def detach(name: str):
            project = await self._project(name)
            try:
                ok = await self.ctx.orchestrator.detach_all(project.session_name)
            except SessionNotFound as e:
                raise HTTPException(status_code=404, detail=str(e)) from e
            return ActionResponse(success=ok, message=f"Detached {project.session_name}")

        @app.delete("/api/projects/{name}/session", response_model=ActionResponse)
        async def kill_session(name: str):
            project = await self._project(name)
            try:
                await self.ctx.orchestrator.kill(project.session_name)
            except SessionNotFound as e:
                raise HTTPException(status_code=404, detail=str(e)) from e
            except DevmuxError as e:
                raise HTTPException(status_code=409, detail=str(e)) from e
            logger.info(f"[API] killed {project.session_name}")
            return ActionResponse(success=True, message=f"Killed {project.session_name}")

        @app.get("/api/spaces")
        async def list_spaces():
            return {
                "available": self.ctx.spaces.available,
                "active_space": self.ctx.spaces.active_space(),
                "displays": [
                    {
                        "display_index": d.display_index,
                        "display_id": d.display_id,
                        "current_space_id": d.current_space_id,
                        "spaces": [vars(s) for s in d.spaces],
                    }
                    for d in self.ctx.spaces.displays()
                ],
            }

        @app.get("/api/diagnostics")
        async def diagnostics():
            return {
                "entries": [e.to_dict() for e in self.ctx.diagnostics.entries],
                "metrics": self.ctx.metrics.get_all_counters(),
            }
