# staticstamp/webmods/health.py
from __future__ import annotations
from aiohttp import web
from staticstamp.inc.webserver import route, static_files_of

@route("GET", "/healthz")
async def health(req: web.Request):
    return web.json_response({"ok": True, "files": len(static_files_of(req).table)})
