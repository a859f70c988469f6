"""
FFmpeg single-frame extractor.

Pipes a video segment into FFmpeg and reads back one JPEG frame, then
writes it to the stream's frame directory.
"""

import asyncio
import shutil
from typing import AsyncIterable, Union

from ..state.models import CapturedFrame, timestamp_now
from ..utils.config import StreamConfig
from ..utils.exceptions import ExtractionError, FilesystemError
from ..utils.logger import get_logger


logger = get_logger(__name__)

VideoSource = Union[bytes, bytearray, memoryview, AsyncIterable[bytes]]


class FrameExtractor:
    """
    Converts raw video into a single JPEG using FFmpeg.

    Input is written to FFmpeg's stdin while stdout and stderr are read
    concurrently, so large segments never stall on a full pipe buffer.
    """

    def __init__(self, config: StreamConfig):
        """
        Initialize frame extractor.

        Args:
            config: Capture settings (ffmpeg_path, ffmpeg_timeout, output_dir)
        """
        self.config = config
        self.ffmpeg_path = config.ffmpeg_path
        self.timeout = config.ffmpeg_timeout

        if not shutil.which(self.ffmpeg_path):
            logger.warning(f"{self.ffmpeg_path} not found in PATH - frame extraction will fail")

    def _build_ffmpeg_command(self) -> list[str]:
        """Build FFmpeg command reading video on stdin, writing one JPEG to stdout."""
        return [
            self.ffmpeg_path,
            '-hide_banner',
            '-loglevel', 'error',
            '-i', 'pipe:0',
            '-frames:v', '1',
            '-an',
            '-f', 'image2pipe',
            '-c:v', 'mjpeg',
            'pipe:1',
        ]

    async def _start_process(self) -> asyncio.subprocess.Process:
        cmd = self._build_ffmpeg_command()
        try:
            return await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError:
            raise ExtractionError(f"{self.ffmpeg_path} not found")
        except OSError as e:
            raise ExtractionError(f"Failed to start FFmpeg: {e}")

    @staticmethod
    async def _feed(process: asyncio.subprocess.Process, video: VideoSource) -> None:
        """Write the video to stdin, respecting pipe back-pressure."""
        stdin = process.stdin
        try:
            if isinstance(video, (bytes, bytearray, memoryview)):
                stdin.write(bytes(video))
                await stdin.drain()
            else:
                async for chunk in video:
                    stdin.write(chunk)
                    await stdin.drain()
            stdin.close()
            await stdin.wait_closed()
        except (BrokenPipeError, ConnectionResetError):
            # FFmpeg stops reading once it has its frame
            logger.debug("FFmpeg closed stdin before the end of input")
        finally:
            if not stdin.is_closing():
                stdin.close()

    async def extract_frame(self, video: VideoSource) -> bytes:
        """
        Extract the first frame of a video as JPEG.

        Args:
            video: Raw segment bytes, or an async iterable of byte chunks

        Returns:
            JPEG-encoded frame

        Raises:
            ExtractionError: If FFmpeg fails to start, exits non-zero,
                times out or produces no output
        """
        process = await self._start_process()
        feeder = asyncio.ensure_future(self._feed(process, video))

        try:
            stdout, stderr, _ = await asyncio.wait_for(
                asyncio.gather(process.stdout.read(), process.stderr.read(), feeder),
                timeout=self.timeout
            )
            returncode = await process.wait()
        except asyncio.TimeoutError:
            raise ExtractionError(f"FFmpeg timed out after {self.timeout}s")
        finally:
            if process.returncode is None:
                try:
                    process.kill()
                except ProcessLookupError:
                    pass
                await process.wait()
            if not feeder.done():
                feeder.cancel()

        if returncode != 0:
            error_msg = stderr.decode('utf-8', errors='replace').strip() or "Unknown error"
            raise ExtractionError(
                f"Could not generate frame (exit code {returncode}): {error_msg[-500:]}",
                returncode=returncode
            )

        if not stdout:
            raise ExtractionError("FFmpeg produced no output", returncode=returncode)

        return stdout

    def persist_frame(self, stream_id: str, jpeg: bytes) -> CapturedFrame:
        """
        Write a frame to <output_dir>/<stream_id>/<RFC 3339 time>.jpeg.

        Args:
            stream_id: Stream identifier
            jpeg: Encoded frame

        Returns:
            CapturedFrame describing the written file

        Raises:
            FilesystemError: If the directory or file cannot be written
        """
        captured_at = timestamp_now()
        stream_dir = self.config.stream_dir(stream_id)
        path = stream_dir / CapturedFrame.filename_for(captured_at)

        try:
            stream_dir.mkdir(parents=True, exist_ok=True)
            path.write_bytes(jpeg)
        except OSError as e:
            raise FilesystemError(f"Can't write frame {path}: {e}")

        logger.debug(f"[{stream_id}] wrote {path.name} ({len(jpeg)} bytes)")
        return CapturedFrame(
            stream_id=stream_id,
            path=path,
            captured_at=captured_at,
            size=len(jpeg)
        )
