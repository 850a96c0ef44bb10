"""
HTTP front end: accepts a target URL and responds with the zipped mirror.
"""

import logging
import shutil
import tempfile
from pathlib import Path

from aiohttp import web

from .cloner import clone_site
from .crawler.url_frontier import CrawlJob
from .errors import ClonerError, InvalidInputError
from .storage.archive import ARCHIVE_CONTENT_TYPE
from .utils.config import Config

logger = logging.getLogger(__name__)

CONFIG_KEY = web.AppKey('config', Config)

CHUNK_SIZE = 64 * 1024

FORM_PAGE = """<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>Site Cloner</title></head>
<body>
  <h1>Clone a website</h1>
  <form method="post" action="/api/clone">
    <input type="url" name="url" placeholder="https://example.com" required>
    <input type="number" name="depth" min="0" placeholder="depth">
    <button type="submit">Clone</button>
  </form>
</body>
</html>
"""


async def index(request: web.Request) -> web.Response:
    return web.Response(text=FORM_PAGE, content_type='text/html')


async def clone(request: web.Request) -> web.StreamResponse:
    """
    POST /api/clone with form fields ``url`` and optional ``depth``.

    Each request gets its own job state and temporary directory, removed
    once the archive has been streamed.
    """
    config = request.app[CONFIG_KEY]
    data = await request.post()

    workdir = Path(tempfile.mkdtemp(prefix='site_'))
    try:
        try:
            depth = data.get('depth')
            max_depth = int(depth) if depth not in (None, '') else config.crawler.max_depth
            job = CrawlJob.create(data.get('url'), max_depth, workdir / 'site')
        except (InvalidInputError, ValueError) as e:
            logger.info(f"Rejected clone request: {e}")
            return web.Response(status=400, text='Invalid URL.')

        archive_name = config.output.archive_name
        try:
            result = await clone_site(job, config, archive_path=workdir / archive_name)
        except ClonerError as e:
            logger.error(f"Clone of {job.target_url} failed: {e}")
            return web.Response(status=500, text='Error cloning website.')

        response = web.StreamResponse(headers={
            'Content-Type': ARCHIVE_CONTENT_TYPE,
            'Content-Disposition': f'attachment; filename={archive_name}',
        })
        response.content_length = result.archive_path.stat().st_size
        await response.prepare(request)
        with open(result.archive_path, 'rb') as f:
            while True:
                chunk = f.read(CHUNK_SIZE)
                if not chunk:
                    break
                await response.write(chunk)
        await response.write_eof()
        return response
    finally:
        shutil.rmtree(workdir, ignore_errors=True)


def create_app(config: Config) -> web.Application:
    """Build the front-end application."""
    app = web.Application()
    app[CONFIG_KEY] = config
    app.router.add_get('/', index)
    app.router.add_post('/api/clone', clone)
    return app


def run_server(config: Config):
    """Serve until interrupted."""
    logger.info(f"Server running on http://{config.server.host}:{config.server.port}")
    web.run_app(create_app(config), host=config.server.host, port=config.server.port,
                print=None)
