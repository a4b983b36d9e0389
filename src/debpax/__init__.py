import logging

import typer
from rich.logging import RichHandler

__version__ = "0.1.0"

logging.basicConfig(
    level=logging.INFO,
    format="%(message)s",
    datefmt="[%X]",
    handlers=[
        RichHandler(
            rich_tracebacks=True,
            tracebacks_suppress=[typer],
        )
    ],
)
