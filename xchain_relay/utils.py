"""Bunch of random utilities."""

import logging
import os
from urllib.parse import urlparse

import coloredlogs


def get_url_domain(url: str) -> str:
    """Redact URL so that only domain is displayed.

    Some services e.g. infura use path as an API key.
    """
    parsed = urlparse(url)
    if parsed.port in (80, 443, None):
        return parsed.hostname
    else:
        return f"{parsed.hostname}:{parsed.port}"


def setup_console_logging(default_log_level="warning") -> logging.Logger:
    """Set up coloured log output.

    - Helper function to have nicer logging output in scripts.
    - Tune down some noisy dependency library logging

    :param default_log_level:
        Used when ``LOG_LEVEL`` environment variable is not set.

    :return:
        Root logger
    """
    level = os.environ.get("LOG_LEVEL", default_log_level).upper()
    numeric_level = getattr(logging, level, None)
    assert numeric_level, f"No level: {level}"

    fmt = "%(asctime)s %(name)-30s %(levelname)-8s %(message)s"
    date_fmt = "%Y-%m-%d %H:%M:%S"
    coloredlogs.install(level=numeric_level, fmt=fmt, datefmt=date_fmt)

    # Mute noise
    logging.getLogger("web3.providers.HTTPProvider").setLevel(logging.WARNING)
    logging.getLogger("web3.RequestManager").setLevel(logging.WARNING)
    logging.getLogger("urllib3.connectionpool").setLevel(logging.WARNING)
    return logging.getLogger()
