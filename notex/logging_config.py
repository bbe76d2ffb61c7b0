"""Rich console logging for local development (``LOG_FORMAT=text``)."""

import logging

from rich.console import Console
from rich.logging import RichHandler

from notex.settings import Settings


def configure_logging(level: str = "INFO") -> None:
    console = Console(stderr=True)
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, markup=False, rich_tracebacks=True)],
        force=True,
    )


def setup_logging(config: Settings) -> None:
    """Install the handler selected by ``LOG_FORMAT``."""
    if config.log_format == "json":
        from notex.structured_logging import configure_structured_logging

        configure_structured_logging(config.log_level)
    else:
        configure_logging(config.log_level)


__all__ = ["configure_logging", "setup_logging"]
