"""Logging setup shared by the server script and ad-hoc tooling."""

import logging

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging once for the process."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
    )
    # The OpenAI client logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
