# staticstamp/webmods/static.py
from __future__ import annotations
import asyncio
from aiohttp import web
from staticstamp.inc.webserver import route, static_files_of
from staticstamp.modules.resolver import Redirect, ServeFile, VERSION_PARAM

CHUNK_SIZE = 256 * 1024


async def send_file(req: web.Request, outcome: ServeFile) -> web.StreamResponse:
    loop = asyncio.get_running_loop()
    with outcome:
        resp = web.StreamResponse()
        resp.content_type = outcome.content_type
        resp.content_length = outcome.size
        if outcome.cache_control:
            resp.headers["Cache-Control"] = outcome.cache_control
        await resp.prepare(req)
        while True:
            chunk = await loop.run_in_executor(None, outcome.file.read, CHUNK_SIZE)
            if not chunk:
                break
            await resp.write(chunk)
        await resp.write_eof()
    return resp


@route("GET", "/{path:.*}", mounted=True)
async def static_file(req: web.Request):
    static_files = static_files_of(req)
    outcome = static_files.resolve(req.match_info["path"], req.query.get(VERSION_PARAM))
    if isinstance(outcome, Redirect):
        raise web.HTTPFound(outcome.location)
    return await send_file(req, outcome)
