"""CLI entry point for the upload proxy.

Configuration is layered: the YAML file (``uploadproxy.yaml`` in the working
directory when ``--config`` is not given), then the ``SUPABASE_*`` and
``ALLOWED_BUCKET`` environment variables, then the flags below. The service
key is read only from the file or the environment.
"""

import argparse
import logging
import sys
from pathlib import Path

import uvicorn

from uploadproxy.config import ProxyConfig, config_from_env, load_config
from uploadproxy.logging_config import configure_logging
from uploadproxy.server import create_app

DEFAULT_CONFIG_PATH = Path("uploadproxy.yaml")

# Flags that map one-to-one onto ServerConfig fields
_SERVER_FLAGS = ("host", "port", "route_prefix", "log_level", "log_format")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments. Every flag defaults to ``None`` (not set)."""
    parser = argparse.ArgumentParser(
        prog="uploadproxy",
        description=(
            "Accept raw PUT uploads and forward them to the storage API "
            "with a server-side service key"
        ),
    )
    parser.add_argument(
        "--config",
        type=Path,
        help=f"YAML config file (default: ./{DEFAULT_CONFIG_PATH} when present)",
    )

    listen = parser.add_argument_group("listener")
    listen.add_argument("--host", help="bind address")
    listen.add_argument("--port", type=int, help="bind port")
    listen.add_argument(
        "--route-prefix",
        help="URL prefix the upload routes are mounted under (e.g. /api/upload)",
    )

    policy = parser.add_argument_group("upload policy")
    policy.add_argument(
        "--allowed-bucket",
        metavar="BUCKET",
        help="only accept uploads into this bucket; pass '' to accept any bucket",
    )

    logs = parser.add_argument_group("logging")
    logs.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
    )
    logs.add_argument("--log-format", choices=["text", "json"])

    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> ProxyConfig:
    """Resolve the process configuration: YAML file, then environment, then flags.

    Raises:
        FileNotFoundError: If ``--config`` names a file that does not exist.
    """
    if args.config is not None:
        config = load_config(args.config)
    elif DEFAULT_CONFIG_PATH.exists():
        config = load_config(DEFAULT_CONFIG_PATH)
    else:
        config = ProxyConfig()

    config = config_from_env(base=config)

    server = {name: getattr(args, name) for name in _SERVER_FLAGS}
    server = {k: v for k, v in server.items() if v is not None}
    updates = {}
    if server:
        updates["server"] = config.server.model_copy(update=server)
    if args.allowed_bucket is not None:
        updates["upstream"] = config.upstream.model_copy(
            update={"allowed_bucket": args.allowed_bucket}
        )
    return config.model_copy(update=updates) if updates else config


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the upload proxy CLI.

    Loads configuration, applies overrides, and starts the server using
    uvicorn.

    Args:
        argv: Argument list to parse. Defaults to sys.argv[1:].
    """
    args = parse_args(argv)

    # Use a basic stderr logger for config-loading errors
    logging.basicConfig(level=logging.INFO, stream=sys.stderr)
    logger = logging.getLogger("uploadproxy")

    try:
        config = build_config(args)
    except FileNotFoundError:
        logger.error("Config file not found: %s", args.config)
        sys.exit(1)
    except Exception as exc:
        logger.error("Failed to load config: %s", exc)
        sys.exit(1)

    configure_logging(
        level=config.server.log_level,
        fmt=config.server.log_format,
        redact=[config.upstream.service_key],
    )

    logger.info(
        "Starting upload proxy on %s:%d (prefix=%s, allowed_bucket=%s)",
        config.server.host,
        config.server.port,
        config.server.route_prefix,
        config.upstream.allowed_bucket or "*",
    )

    app = create_app(config)

    uvicorn.run(
        app,
        host=config.server.host,
        port=config.server.port,
        log_level=config.server.log_level.lower(),
        timeout_graceful_shutdown=config.server.shutdown_timeout,
        timeout_keep_alive=5,
    )


if __name__ == "__main__":
    main()
