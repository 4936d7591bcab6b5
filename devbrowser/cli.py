"""``dev-browser-server`` entry point."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from devbrowser.core.config import ServerConfig
from devbrowser.server.app import DevBrowserServer

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="dev-browser-server",
        description="Keep one browser alive and serve named pages to short-lived scripts.",
        epilog="Environment: DEV_BROWSER_HEADLESS=true runs headless; flags win over env.",
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--headless",
        dest="headless",
        action="store_true",
        default=None,
        help="Run the browser headless",
    )
    mode.add_argument(
        "--no-headless",
        dest="headless",
        action="store_false",
        help="Run the browser headed (default)",
    )
    parser.add_argument("--host", default=None, help="HTTP API bind address (default: 127.0.0.1)")
    parser.add_argument("--port", type=int, default=None, help="HTTP API port (default: 9222)")
    parser.add_argument("--cdp-port", type=int, default=None, help="CDP debugging port (default: 9223)")
    parser.add_argument("--profile-dir", type=Path, default=None, help="Browser user-data directory")
    parser.add_argument("--log-level", default="INFO", help="Logging level (default: INFO)")
    return parser.parse_args(argv)


def build_config(args: argparse.Namespace, environ: dict[str, str] | None = None) -> ServerConfig:
    return ServerConfig.from_env(environ).with_overrides(
        headless=args.headless,
        host=args.host,
        port=args.port,
        cdp_port=args.cdp_port,
        profile_dir=args.profile_dir,
    )


async def _run(config: ServerConfig) -> None:
    server = DevBrowserServer(config)
    await server.start()
    print("Dev browser server started")
    print(f"  Mode: {'headless' if config.headless else 'headed'}")
    print(f"  HTTP API: {config.base_url}")
    print(f"  WebSocket: {server.ws_endpoint}")
    print(f"  Tmp directory: {config.tmp_dir}")
    print(f"  Profile directory: {config.profile_dir}")
    print("\nReady\n\nPress Ctrl+C to stop", flush=True)
    try:
        await asyncio.Event().wait()
    finally:
        await server.stop()


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv if argv is not None else sys.argv[1:])
    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    config = build_config(args)
    try:
        asyncio.run(_run(config))
    except KeyboardInterrupt:
        logger.info("interrupted, shutting down")
    return 0


if __name__ == "__main__":
    sys.exit(main())
