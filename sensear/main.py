"""Main application entry point for SenseEar."""

import sys
import time
import argparse
import logging
from pathlib import Path
from typing import Optional

from sensear import __version__
from sensear.audio.permission import create_permission
from sensear.inference.engine import InferenceEngine
from sensear.models.session import SessionStatus
from sensear.services.capture_pipeline import CapturePipeline
from sensear.services.session_controller import SessionController

from .config import SensearConfig

logger = logging.getLogger(__name__)


class Application:
    """Composition root: builds the engine, pipeline and controller from config."""

    def __init__(self, config: SensearConfig):
        self.config = config
        self.engine = InferenceEngine(
            model_path=config.get_model_path(),
            labels=config.get_labels(),
            num_threads=config.get('model.num_threads', 4),
        )
        self.pipeline = CapturePipeline.from_config(config, self.engine)
        self.permission = create_permission(
            config.get('permissions.microphone', 'probe'),
            config.get('audio.input_device_index'),
        )
        self.controller = SessionController(
            permission=self.permission,
            pipeline=self.pipeline,
            engine=self.engine,
        )
        self._last_printed = None

    def init(self) -> bool:
        return self.controller.init()

    def run_auto(self, duration: int) -> None:
        """Listen for ``duration`` seconds and print each detection."""
        self.controller.subscribe(self._print_status)
        try:
            self.controller.start()
            if not self.controller.is_listening:
                print(f"Could not start listening: {self.controller.status.last_error}")
                return
            print(f"Listening for {duration}s...")
            time.sleep(duration)
            stats = self.pipeline.get_recording_stats()
            logger.info(f"Auto mode captured {stats.total_chunks} chunks in {stats.duration_seconds:.1f}s")
            print(f"Captured {stats.total_chunks} chunks in {stats.duration_seconds:.1f}s")
        finally:
            self.controller.unsubscribe(self._print_status)
            self.cleanup()

    def _print_status(self, status: SessionStatus) -> None:
        if status.result is not None and status.result is not self._last_printed:
            self._last_printed = status.result
            print(status.result_text)

    def cleanup(self) -> None:
        self.controller.close()


def setup_logging(config, level: str = "INFO") -> None:
    """Set up logging configuration from YAML config."""
    log_file_path = config.get('logging.file_path', 'data/logs/sensear.log')
    console_output = config.get('logging.console_output', True)

    log_dir = Path(log_file_path).parent
    log_dir.mkdir(parents=True, exist_ok=True)

    handlers = []

    # File handler - always write to file
    file_handler = logging.FileHandler(log_file_path)
    file_handler.setLevel(logging.DEBUG)
    file_formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'
    )
    file_handler.setFormatter(file_formatter)
    handlers.append(file_handler)

    # Console handler - only if enabled in config
    if console_output:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(logging.WARNING)  # Only show warnings and above on console
        console_formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
        console_handler.setFormatter(console_formatter)
        handlers.append(console_handler)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(getattr(logging, level.upper()))
    for handler in handlers:
        root_logger.addHandler(handler)

    logger = logging.getLogger(__name__)
    logger.info("="*50)
    logger.info("SenseEar application starting up")
    logger.info(f"Log file: {log_file_path}")
    logger.info(f"Log level set to: {level}")
    logger.info("="*50)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="SenseEar - Live sound classification from the microphone",
        epilog="Keys: space/enter=Start/stop listening, q=Quit"
    )

    parser.add_argument(
        "--config",
        type=str,
        help="Path to configuration YAML file (default: built-in settings)"
    )

    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Set logging level (default: logging.level from config)"
    )

    parser.add_argument(
        "--auto",
        action="store_true",
        help="Listen for the given duration, print detections, then exit"
    )

    parser.add_argument(
        "--duration",
        type=int,
        default=10,
        help="Duration in seconds for auto mode (default: 10)"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"SenseEar v{__version__}"
    )
    return parser


def main(argv: Optional[list] = None) -> None:
    """Main entry point for SenseEar application."""
    args = build_parser().parse_args(argv)

    try:
        config = SensearConfig(args.config)
    except (FileNotFoundError, ValueError) as e:
        print(f"❌ Error: {e}")
        sys.exit(1)

    setup_logging(config, args.log_level or config.get('logging.level', 'INFO'))

    try:
        app = Application(config)
    except ValueError as e:
        print(f"❌ Error: {e}")
        sys.exit(1)

    try:
        app.init()
        if args.auto:
            app.run_auto(args.duration)
        else:
            from .ui.status_screen import StatusScreen
            StatusScreen(app.controller).run()
            app.cleanup()
    except KeyboardInterrupt:
        app.cleanup()
        print("\n👋 Goodbye!")
    except Exception as e:
        print(f"❌ Error: {e}")
        logging.error(f"Application error: {e}")
        app.cleanup()
        sys.exit(1)


if __name__ == "__main__":
    main()
