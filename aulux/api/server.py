"""
FastAPI server for the Aulux API. Run with run_api_server(app).
Central endpoint: GET /api/health. Per-plugin routes are mounted from
aulux.plugins.<package>.api (get_router(aulux_app)) under /api/<package>/.
Docs: http://<host>:<port>/docs
"""
import importlib
import logging
import pkgutil
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import FastAPI

from aulux.core.errors import install_error_handlers

logger = logging.getLogger(__name__)


def create_app(aulux_app: Any) -> FastAPI:
    """Create FastAPI app with routes that use the given AuluxApp instance."""
    app = FastAPI(title="Aulux API", description="Classroom reporting, notifications and attendance")
    install_error_handlers(app)

    @app.get("/api/health")
    def health() -> Dict[str, Any]:
        return {"status": "ok", "time": datetime.now(timezone.utc).isoformat()}

    # Mount per-plugin API routers from aulux.plugins.<name>.api (get_router(aulux_app))
    plugins_pkg = importlib.import_module("aulux.plugins")
    for _mod, name, is_pkg in pkgutil.iter_modules(plugins_pkg.__path__):
        if not is_pkg:
            continue
        try:
            api_module = importlib.import_module(f"aulux.plugins.{name}.api")
        except ModuleNotFoundError as e:
            if e.name != f"aulux.plugins.{name}.api":
                raise
            continue
        if not hasattr(api_module, "get_router") or not callable(api_module.get_router):
            continue
        router = api_module.get_router(aulux_app)
        if router is not None:
            app.include_router(router, prefix=f"/api/{name}")
            logger.debug(f"Mounted API router for plugin {name}")

    return app


def run_api_server(aulux_app: Any) -> None:
    """
    Serve the API with uvicorn until interrupted.
    Reads api.host (default 127.0.0.1) and api.port (default 8765) from config.
    """
    import uvicorn

    api_config = aulux_app.config.section("api")
    host = api_config.get("host", "127.0.0.1")
    port = int(api_config.get("port", 8765))
    fastapi_app = create_app(aulux_app)
    logger.info(f"API server listening at http://{host}:{port} (docs at /docs)")
    uvicorn.run(fastapi_app, host=host, port=port, log_config=None)
