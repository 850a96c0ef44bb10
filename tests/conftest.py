"""
Shared fixtures: a throwaway website served by aiohttp on localhost.
"""

from collections import Counter
from typing import Dict, Tuple, Union

import pytest
from aiohttp import web

from site_cloner.utils.config import Config

PNG_BYTES = b'\x89PNG\r\n\x1a\n' + bytes(range(64))
GIF_BYTES = b'GIF89a' + bytes(range(32))

HITS = web.AppKey('hits', Counter)

# path -> (body, content type) or an HTTP status to fail with
SiteSpec = Dict[str, Union[Tuple[Union[str, bytes], str], int]]


def build_site(pages: SiteSpec) -> web.Application:
    """Application serving ``pages`` and counting every request by path+query."""
    hits = Counter()

    async def handler(request: web.Request) -> web.Response:
        hits[request.path_qs] += 1
        entry = pages.get(request.path_qs, pages.get(request.path))
        if entry is None:
            raise web.HTTPNotFound()
        if isinstance(entry, int):
            return web.Response(status=entry, text='error')
        body, content_type = entry
        if isinstance(body, str):
            return web.Response(text=body, content_type=content_type, charset='utf-8')
        return web.Response(body=body, content_type=content_type)

    app = web.Application()
    app[HITS] = hits
    app.router.add_route('GET', '/{tail:.*}', handler)
    return app


@pytest.fixture
def site(aiohttp_server):
    """Start a site and return (base_url, hits)."""
    async def start(pages: SiteSpec):
        app = build_site(pages)
        server = await aiohttp_server(app)
        return str(server.make_url('/')), app[HITS]
    return start


@pytest.fixture
def config() -> Config:
    config = Config()
    config.crawler.request_timeout = 10
    config.logging.file = ''
    return config
