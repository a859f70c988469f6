"""
HLS segment fetcher.

Resolves the latest media segment of a stream from its playlist and
downloads it over HTTPS.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import aiohttp
import m3u8
from m3u8.parser import ParseError

from ..utils.config import StreamConfig
from ..utils.exceptions import (
    FilesystemError,
    HTTPStatusError,
    PlaylistFormatError,
    TransportError,
)
from ..utils.logger import get_logger


logger = get_logger(__name__)

CHUNK_SIZE = 64 * 1024


def parse_latest_segment(content: str, source: str = '<playlist>') -> str:
    """
    Pick the segment of interest from a media playlist.

    Playlists are expected to list the most recent segment first, so
    this is simply the first segment URI.

    Args:
        content: Playlist text
        source: Playlist URL, used in error messages

    Returns:
        URI of the first media segment

    Raises:
        PlaylistFormatError: If the text is not a media playlist or lists no segments
    """
    if not content.lstrip('\ufeff \t\r\n').startswith('#EXTM3U'):
        raise PlaylistFormatError(f"Not an M3U8 playlist: {source}")

    try:
        playlist = m3u8.loads(content)
    except (ParseError, ValueError, IndexError) as e:
        raise PlaylistFormatError(f"Cannot parse playlist {source}: {e}")

    if playlist.is_variant:
        raise PlaylistFormatError(f"Wrong playlist type (master playlist): {source}")

    if not playlist.segments:
        raise PlaylistFormatError(f"Playlist has no segments: {source}")

    uri = playlist.segments[0].uri
    if not uri:
        raise PlaylistFormatError(f"First segment has no URI: {source}")

    return uri


class SegmentFetcher:
    """
    HTTP client for stream playlists and segments.

    Stream endpoints are internal and usually self-signed, so certificate
    verification is off unless `verify_ssl` is set.
    """

    def __init__(
        self,
        config: StreamConfig,
        session: Optional[aiohttp.ClientSession] = None
    ):
        """
        Initialize segment fetcher.

        Args:
            config: Capture settings
            session: Existing session to use instead of creating one
        """
        self.config = config
        self._session = session
        self._owns_session = session is None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create the aiohttp session."""
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self.config.http_timeout)
            connector = aiohttp.TCPConnector(ssl=self.config.verify_ssl)
            self._session = aiohttp.ClientSession(timeout=timeout, connector=connector)
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        """Close the HTTP session if this fetcher created it."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    def build_url(self, stream_id: str, suffix: str) -> str:
        """Resolve the URL template for a stream and append a path."""
        return self.config.stream_url(stream_id) + suffix

    def segment_url(self, stream_id: str, segment_uri: str) -> str:
        """URL of a segment; absolute URIs from the playlist are kept as-is."""
        if segment_uri.startswith(('http://', 'https://')):
            return segment_uri
        return self.build_url(stream_id, segment_uri)

    @staticmethod
    def _check_status(response: aiohttp.ClientResponse, url: str) -> None:
        if response.status != 200:
            raise HTTPStatusError(response.status, url)

    def _ensure_stream_dir(self, stream_id: str) -> None:
        stream_dir = self.config.stream_dir(stream_id)
        try:
            stream_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FilesystemError(f"Can't create path {stream_dir}: {e}")

    async def resolve_latest_segment(self, stream_id: str) -> str:
        """
        Fetch the stream playlist and return its first segment URI.

        Args:
            stream_id: Stream identifier substituted into the URL template

        Returns:
            Segment URI as listed in the playlist

        Raises:
            TransportError: On network failure or timeout
            HTTPStatusError: If the playlist response is not 200
            PlaylistFormatError: If the body is not a usable media playlist
        """
        url = self.build_url(stream_id, self.config.playlist_name)
        session = await self._get_session()

        try:
            async with session.get(url) as response:
                self._check_status(response, url)
                body = await response.read()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransportError(f"Playlist request failed for {url}: {e!r}") from e

        try:
            content = body.decode('utf-8')
        except UnicodeDecodeError:
            raise PlaylistFormatError(f"Playlist is not UTF-8 text: {url}")

        uri = parse_latest_segment(content, url)
        logger.debug(f"[{stream_id}] latest segment: {uri}")
        return uri

    @asynccontextmanager
    async def open_segment(self, stream_id: str, segment_uri: str) -> AsyncIterator[AsyncIterator[bytes]]:
        """
        Open a segment download and yield its body as a chunk stream.

        The stream directory is created once the response status is known
        to be good. Read failures while iterating raise TransportError.

        Usage:
            async with fetcher.open_segment('cam1', 'seg1.ts') as chunks:
                jpeg = await extractor.extract_frame(chunks)

        Raises:
            TransportError: On network failure or timeout
            HTTPStatusError: If the segment response is not 200
            FilesystemError: If the stream directory cannot be created
        """
        url = self.segment_url(stream_id, segment_uri)
        session = await self._get_session()

        try:
            response = await session.get(url)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransportError(f"Segment request failed for {url}: {e!r}") from e

        try:
            self._check_status(response, url)
            self._ensure_stream_dir(stream_id)
            yield self._iter_body(response, url)
        finally:
            response.release()

    async def _iter_body(self, response: aiohttp.ClientResponse, url: str) -> AsyncIterator[bytes]:
        try:
            async for chunk in response.content.iter_chunked(CHUNK_SIZE):
                yield chunk
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransportError(f"Segment read failed for {url}: {e!r}") from e

    async def fetch_segment(self, stream_id: str, segment_uri: str) -> bytes:
        """
        Download a whole segment into memory.

        Args:
            stream_id: Stream identifier substituted into the URL template
            segment_uri: URI returned by resolve_latest_segment

        Returns:
            Raw segment bytes

        Raises:
            TransportError, HTTPStatusError, FilesystemError
        """
        async with self.open_segment(stream_id, segment_uri) as chunks:
            data = bytearray()
            async for chunk in chunks:
                data.extend(chunk)

        logger.debug(f"[{stream_id}] fetched {segment_uri} ({len(data)} bytes)")
        return bytes(data)
