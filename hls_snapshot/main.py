"""
Main entry point for the HLS snapshot pipeline.

Loads configuration, sets up logging and runs the capture orchestrator.
"""

import asyncio
import signal
import sys
from typing import Optional

import click

from .capture.orchestrator import CaptureOrchestrator
from .utils.config import Config, load_config
from .utils.exceptions import ConfigurationError
from .utils.logger import setup_from_config, get_logger


logger = None  # Initialize after config


class Pipeline:
    """
    Main pipeline wrapper.

    Builds the orchestrator from configuration and ties its lifecycle to
    process signals.
    """

    def __init__(self, config: Config, log_level: Optional[str] = None):
        """
        Initialize pipeline with configuration.

        Args:
            config: Loaded configuration
            log_level: Overrides logging.level when given
        """
        self.config = config
        self.stream_config = config.get_stream_config()

        global logger
        logging_config = config.get_logging_config()
        setup_from_config(logging_config, level=log_level)
        logger = get_logger(__name__)

        self.orchestrator = CaptureOrchestrator(
            self.stream_config,
            status_every=logging_config.get('status_every', 10)
        )

    def _setup_signals(self, loop: asyncio.AbstractEventLoop) -> None:
        """Stop the orchestrator on SIGINT/SIGTERM."""
        def signal_handler(signum):
            logger.info(f"Received {signal.Signals(signum).name}, initiating shutdown...")
            self.orchestrator.stop()

        for signum in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(signum, signal_handler, signum)
            except NotImplementedError:
                # Windows event loops; KeyboardInterrupt still applies
                pass

    async def run(self) -> None:
        """Capture until a shutdown signal arrives."""
        self._setup_signals(asyncio.get_running_loop())

        logger.info("=" * 50)
        logger.info("Starting HLS snapshot pipeline")
        logger.info("=" * 50)
        logger.info(f"Streams: {', '.join(self.stream_config.camera_ids)}")
        logger.info(f"Clean up: {'on' if self.stream_config.clean_up else 'off'}")

        await self.orchestrator.run()
        logger.info("Pipeline stopped")

    async def run_once(self) -> bool:
        """
        Capture one frame per stream.

        Returns:
            True if every stream produced a frame
        """
        try:
            results = await self.orchestrator.run_once()
        finally:
            await self.orchestrator.shutdown()

        failed = [stream_id for stream_id, frame in results.items() if frame is None]
        if failed:
            logger.error(f"No frame for: {', '.join(failed)}")
        return not failed


@click.command()
@click.option(
    '--config', '-c',
    default='config.yaml',
    help='Path to configuration file'
)
@click.option(
    '--once',
    is_flag=True,
    help='Capture one frame per stream and exit'
)
@click.option(
    '--log-level',
    type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR'], case_sensitive=False),
    default=None,
    help='Override the configured log level'
)
def main(config: str, once: bool, log_level: Optional[str]):
    """
    HLS Snapshot Pipeline

    Periodically grabs a still frame from each configured HLS stream.
    """
    try:
        cfg = load_config(config)
    except ConfigurationError as e:
        click.echo(f"Configuration error: {e}", err=True)
        sys.exit(1)

    pipeline = Pipeline(cfg, log_level=log_level)

    if once:
        success = asyncio.run(pipeline.run_once())
        sys.exit(0 if success else 1)

    try:
        asyncio.run(pipeline.run())
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
    except Exception as e:
        logger.exception(f"Pipeline error: {e}")
        sys.exit(1)


if __name__ == '__main__':
    main()
