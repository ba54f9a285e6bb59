"""Main entry point for the phonebooth daemon."""

import asyncio
import logging
import signal
import sys
from typing import NoReturn

from .config import load_config
from .controller import PlayerController
from .ipc_server import IPCServer
from .logging_setup import setup_logging
from .state import JobStateManager

logger = logging.getLogger(__name__)

__all__ = ["run"]  # Export the run function


async def main() -> int:
    """Main daemon function.

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    # Load configuration first
    try:
        config = load_config()
    except Exception as e:
        print(f"Error loading configuration: {e}", file=sys.stderr)
        return 1

    # Setup logging
    setup_logging(config.daemon.log_level, config.daemon.computed_log_file)
    logger.info("Starting phonebooth daemon...")
    logger.info(f"Transformer command: {' '.join(config.transformer.command)}")

    # Create state owners and shutdown event
    job_state = JobStateManager()
    controller = PlayerController(config, job_state)
    shutdown_event = asyncio.Event()

    ipc_server = IPCServer(
        config.daemon.computed_socket_path,
        controller,
        shutdown_event,
    )

    try:
        # Setup signal handlers
        def handle_signal(sig: int) -> None:
            sig_name = signal.Signals(sig).name
            logger.info(f"Received signal {sig_name}, initiating shutdown...")
            shutdown_event.set()

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, lambda s=sig: handle_signal(s))

        # Start IPC server to handle front end commands
        await ipc_server.start()

        logger.info("Daemon started successfully")

        # Wait for shutdown signal
        await shutdown_event.wait()

        logger.info("Starting graceful shutdown...")

    except Exception:
        logger.exception("Fatal error in daemon startup:")
        return 1

    finally:
        # Stop in reverse order
        await ipc_server.stop()
        await controller.shutdown()

        logger.info("Daemon shutdown complete")

    return 0


def run() -> NoReturn:
    """Entry point for the daemon."""
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        sys.exit(0)
    except Exception as e:
        # Fallback logger in case of early failure
        logging.basicConfig()
        logger.exception(f"Daemon failed with unhandled exception: {e}")
        sys.exit(1)


if __name__ == "__main__":
    run()
