# Shared infrastructure utilities (logging)

__all__ = ["get_logger", "shutdown_logging"]

from .logger import get_logger, shutdown_logging
