"""Puppetry entrypoint. Loads config, starts the ident server, puppet manager and RPC server."""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path

from loguru import logger

from puppetry import __version__
from puppetry.config import Config, load_config_with_env
from puppetry.core.errors import IdentListenerError, PuppetryConfigurationError
from puppetry.ident import IdentServer
from puppetry.puppets import PuppetManager, SetupParams
from puppetry.rpc import RPCServer


# pydle reports socket errors, reconnects and timeouts through stdlib logging
_PYDLE_LOGGERS = ("pydle", "pydle.client", "pydle.connection", "pydle.features.ircv3.cap")


class InterceptHandler(logging.Handler):
    """Forward stdlib log records to loguru, keeping the origin logger name."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno
        text = record.getMessage()
        logger.patch(
            lambda r: r.update(name=record.name, function=record.funcName, line=record.lineno),
        ).opt(exception=record.exc_info).log(level, text)


def _intercept_logging(level: str) -> None:
    """Route pydle's stdlib loggers into loguru at level."""
    for name in _PYDLE_LOGGERS:
        lib_logger = logging.getLogger(name)
        lib_logger.handlers = [InterceptHandler()]
        lib_logger.propagate = False
        lib_logger.setLevel(level)


def setup_logging(verbose: bool = False) -> None:
    """Configure loguru and route pydle's logging through it."""
    level = "DEBUG" if verbose else "INFO"
    logger.remove()
    logger.add(
        sys.stderr,
        level=level,
        format=(
            "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | "
            "<cyan>{name}</cyan> | {message}"
        ),
    )
    _intercept_logging(level)


def load_settings(config_path: Path) -> Config:
    """Load and validate config from path."""
    config = Config()
    config.reload(load_config_with_env(config_path))
    return config


def setup_params_from_config(config: Config, ident_server: IdentServer) -> SetupParams:
    return SetupParams(
        server=config.irc_server,
        use_tls=config.irc_use_tls,
        insecure_skip_verify=not config.irc_tls_verify,
        server_password=config.irc_server_password,
        webirc_password=config.irc_webirc_password,
        ident_server=ident_server,
    )


def main() -> None:
    """Main entrypoint."""
    parser = argparse.ArgumentParser(
        description="Puppetry: IRC puppet manager with an RFC 1413 ident server"
    )
    parser.add_argument(
        "--config",
        "-c",
        type=Path,
        default=Path("config.yaml"),
        help="Path to config file (default: config.yaml)",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    args = parser.parse_args()

    setup_logging(args.verbose)

    if not args.config.exists():
        logger.error("Config file not found: {}", args.config)
        sys.exit(1)

    try:
        config = load_settings(args.config)
    except PuppetryConfigurationError as exc:
        logger.error("Invalid config {}: {}", args.config, exc)
        sys.exit(1)
    logger.info("Config loaded from {}", args.config)

    try:
        asyncio.run(_run(config))
    except IdentListenerError as exc:
        logger.error("ident: {}", exc)
        sys.exit(1)
    except KeyboardInterrupt:
        pass


async def _run(config: Config) -> None:
    """Async run loop. Start servers and wait until cancelled."""
    ident_server = IdentServer(lookup_timeout=config.ident_lookup_timeout)
    await ident_server.start(config.ident_port)

    manager = PuppetManager(
        ident_server,
        ping_interval=config.puppet_ping_interval,
        settle_timeout=config.connect_settle_timeout,
    )
    if config.irc_server:
        manager.setup(setup_params_from_config(config, ident_server))
    else:
        logger.warning("irc_server not set; waiting for Setup over RPC")

    rpc = RPCServer(manager, host=config.rpc_host, port=config.rpc_port, token=config.rpc_token)
    await rpc.start()

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    try:
        await stop.wait()
    finally:
        logger.info("Puppetry shutting down")
        await manager.stop()
        await rpc.stop()
        await ident_server.stop()


if __name__ == "__main__":
    main()
