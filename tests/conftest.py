"""
Shared fixtures: stream endpoints, a stand-in FFmpeg and capture settings.
"""

import stat
from contextlib import asynccontextmanager
from pathlib import Path

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from hls_snapshot.utils.config import StreamConfig


FAKE_JPEG = b'\xff\xd8\xff\xe0FAKEJPEG\xff\xd9'
VIDEO_MAGIC = b'VIDEO00'
VALID_VIDEO = VIDEO_MAGIC + b'\x00' * 493

MEDIA_PLAYLIST = """#EXTM3U
#EXT-X-VERSION:3
#EXT-X-TARGETDURATION:2
#EXT-X-MEDIA-SEQUENCE:41
#EXTINF:2.000,
seg1.ts
#EXTINF:2.000,
seg2.ts
"""

# Reads stdin, fails like FFmpeg on input without the magic prefix
FFMPEG_SCRIPT = """#!/bin/sh
magic=$(head -c 7)
cat > /dev/null
if [ "$magic" != "VIDEO00" ]; then
    echo "pipe:0: Invalid data found when processing input" >&2
    exit 1
fi
printf '\\377\\330\\377\\340FAKEJPEG\\377\\331'
"""

# Answers without reading its input
FFMPEG_EARLY_EXIT_SCRIPT = """#!/bin/sh
printf '\\377\\330\\377\\340FAKEJPEG\\377\\331'
exit 0
"""

FFMPEG_EMPTY_SCRIPT = """#!/bin/sh
cat > /dev/null
exit 0
"""

FFMPEG_SLOW_SCRIPT = """#!/bin/sh
exec sleep 5
"""


def _write_script(path: Path, content: str) -> str:
    path.write_text(content)
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return str(path)


@pytest.fixture
def fake_ffmpeg(tmp_path):
    """Executable that behaves like a one-frame FFmpeg invocation."""
    return _write_script(tmp_path / "ffmpeg", FFMPEG_SCRIPT)


@pytest.fixture
def make_ffmpeg(tmp_path):
    """Factory for alternative FFmpeg stand-ins."""
    def factory(content: str, name: str = "ffmpeg-alt") -> str:
        return _write_script(tmp_path / name, content)
    return factory


@pytest.fixture
def output_dir(tmp_path):
    path = tmp_path / "frames"
    path.mkdir()
    return path


@pytest.fixture
def make_config(output_dir, fake_ffmpeg):
    """Factory for StreamConfig pointing at a test server."""
    def factory(base_url: str = "http://127.0.0.1:1", **overrides) -> StreamConfig:
        settings = dict(
            url_template=f"{base_url}/live/{{camera_id}}/",
            camera_ids=('cam1',),
            poll_interval=1,
            clean_up=True,
            output_dir=output_dir,
            ffmpeg_path=fake_ffmpeg,
            ffmpeg_timeout=5,
            http_timeout=5,
        )
        settings.update(overrides)
        return StreamConfig(**settings)
    return factory


@pytest.fixture
def stream_server():
    """
    Async context manager serving fixed responses by path.

    Usage:
        async with stream_server({'/live/cam1/index.m3u8': (200, b'...')}) as base_url:
            ...

    Pass an ssl.SSLContext to serve over HTTPS.
    """
    @asynccontextmanager
    async def serve(routes: dict, ssl_context=None):
        async def handler(request: web.Request) -> web.Response:
            status, body = routes.get(request.path, (404, b'not found'))
            return web.Response(status=status, body=body)

        app = web.Application()
        app.router.add_get('/{tail:.*}', handler)
        server = TestServer(app)
        await server.start_server(ssl=ssl_context)
        try:
            yield f"{server.scheme}://{server.host}:{server.port}"
        finally:
            await server.close()

    return serve


@pytest.fixture
def cam1_routes():
    """Playlist and segment for cam1."""
    return {
        '/live/cam1/index.m3u8': (200, MEDIA_PLAYLIST.encode()),
        '/live/cam1/seg1.ts': (200, VALID_VIDEO),
    }
