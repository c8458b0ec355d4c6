from __future__ import annotations

import logging


def configure_app_logging(level: str = "INFO") -> None:
    """
    Set the level for the `warehouse_ops` logger tree.

    Uvicorn installs the handlers; we only adjust levels for our package.
    Use `WAREHOUSE_LOG_LEVEL=DEBUG` to see ledger and session resolution details.
    """

    normalized = level.upper()
    package_logger = logging.getLogger("warehouse_ops")
    package_logger.setLevel(normalized)
    package_logger.propagate = True
