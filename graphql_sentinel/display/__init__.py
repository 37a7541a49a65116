"""Console and log output setup."""

from graphql_sentinel.display.logging_config import setup_logging

__all__ = ["setup_logging"]
