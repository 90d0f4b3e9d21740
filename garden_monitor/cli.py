"""Console entry point for the garden monitor API server."""
from __future__ import annotations

import argparse
import logging
import sys

from garden_monitor import create_app
from garden_monitor.config import load_config

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    """Run the Flask API with the development server."""
    config = load_config()
    parser = argparse.ArgumentParser(prog="garden-monitor")
    parser.add_argument("--host", default=config.host, help=f"Bind address (default: {config.host})")
    parser.add_argument("--port", type=int, default=config.port, help=f"Port (default: {config.port})")
    parser.add_argument(
        "--backend",
        choices=("http", "memory"),
        default=config.backend,
        help="Garden backend: REST API or self-contained in-memory data",
    )
    parser.add_argument("--debug", action="store_true", default=config.DEBUG, help="Enable debug logging")
    args = parser.parse_args(argv)

    try:
        app = create_app({"backend": args.backend, "DEBUG": args.debug})
    except Exception as exc:
        logging.exception("ERROR: Failed to build application: %s", exc)
        return 1

    logger.info("Starting server on %s:%s", args.host, args.port)
    try:
        # Requests block on one shared event loop; the reloader would fork a second one.
        app.run(host=args.host, port=args.port, debug=False, use_reloader=False, threaded=True)
        logger.info("Server stopped.")
        return 0
    except KeyboardInterrupt:
        logger.info("Server stopped by user.")
        return 0
    except Exception as exc:  # pragma: no cover - top-level runtime errors
        logger.exception("ERROR: Failed to start server: %s", exc)
        return 1
    finally:
        app.extensions["garden_monitor_shutdown"]("cli-exit")


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
