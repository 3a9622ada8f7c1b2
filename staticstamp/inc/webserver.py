# staticstamp/inc/webserver.py
from __future__ import annotations
import asyncio, importlib, pkgutil
from dataclasses import dataclass
from typing import Callable, List, Optional
from aiohttp import web
import staticstamp
from staticstamp.inc.errors import StaticFilesError, UnexpectedIoError
from staticstamp.inc.logging import logger as log
from staticstamp.modules.resolver import StaticFiles

STATIC_FILES_KEY = web.AppKey("static_files", StaticFiles)

@dataclass
class APIRoute:
    method: str
    path: str
    handler: Callable
    mounted: bool = False  # path is relative to the static path prefix

_registry: List[APIRoute] = []

def route(method: str, path: str, *, mounted: bool=False):
    method = method.upper()
    def deco(fn):
        _registry.append(APIRoute(method, path, fn, mounted))
        return fn
    return deco

def _cfg():
    st = getattr(staticstamp, "settings", None)
    if st is not None:
        return {
            "host": st.get("WEB.listen_host", "0.0.0.0"),
            "port": st.get("WEB.listen_port", 8080, int),
        }
    return {"host": "0.0.0.0", "port": 8080}

def static_files_of(request: web.Request) -> StaticFiles:
    return request.app[STATIC_FILES_KEY]

class DynamicWebServer:
    def __init__(self, static_files: StaticFiles):
        self.static_files = static_files
        self.app = web.Application(middlewares=[self._errors_mw])
        self.app[STATIC_FILES_KEY] = static_files
        self._runner: Optional[web.AppRunner] = None
        self._site: Optional[web.TCPSite] = None
        self._registered = set()
        self._cfg = _cfg()

    def _attach(self, route_obj: APIRoute):
        path = route_obj.path
        if route_obj.mounted:
            path = self.static_files.config.path_prefix + path
        key = (route_obj.method, path)
        # prevent duplicates when re-wiring
        if key in self._registered:
            return
        self._registered.add(key)
        self.app.router.add_route(route_obj.method, path, route_obj.handler)

    # ---------- Errors ----------
    @web.middleware
    async def _errors_mw(self, request: web.Request, handler):
        try:
            return await handler(request)
        except UnexpectedIoError as e:
            log.error(f"[web] {request.method} {request.path}: {e}")
            return web.Response(status=e.status)
        except StaticFilesError as e:
            # 404s for traversal attempts look exactly like misses
            log.debug(f"[web] {request.method} {request.path}: {type(e).__name__}: {e}")
            return web.Response(status=e.status)

    # ---------- Boot / Stop ----------
    def build(self) -> web.Application:
        self._load_modules()
        self._wire_routes()
        return self.app

    async def start(self):
        self.build()
        host, port = self._cfg["host"], self._cfg["port"]
        self._runner = web.AppRunner(self.app)
        await self._runner.setup()
        self._site = web.TCPSite(self._runner, host, port)
        await self._site.start()
        log.info(f"[web] listening on {host}:{port}")

    async def stop(self):
        if self._runner:
            await self._runner.cleanup()
            self._runner, self._site = None, None
        log.info("[web] stopped")

    # ---------- Loader ----------
    def _load_modules(self):
        import staticstamp.webmods as pkg
        base = pkg.__name__
        for modinfo in pkgutil.iter_modules(pkg.__path__):
            fullname = f"{base}.{modinfo.name}"
            importlib.import_module(fullname)
            log.info(f"[web] loaded module {fullname}")

    def _wire_routes(self):
        for r in _registry:
            self._attach(r)

_server: Optional[DynamicWebServer] = None

async def ensure_webserver(static_files: Optional[StaticFiles] = None) -> DynamicWebServer:
    global _server
    if _server: return _server
    static_files = static_files or staticstamp.static_files
    if static_files is None:
        raise RuntimeError("staticstamp is not initialized; call staticstamp.initialize() first")
    _server = DynamicWebServer(static_files)
    await _server.start()
    return _server

async def serve_forever(static_files: Optional[StaticFiles] = None):
    server = await ensure_webserver(static_files)
    try:
        while True:
            await asyncio.sleep(3600)
    finally:
        await server.stop()
