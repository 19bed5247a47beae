"""
Logging helpers for the batchmdcs SDK.

Provides a single entrypoint `configure_logging` to establish pleasant
defaults for everyday use, while keeping per-file transfer details
available at DEBUG level.
"""

from __future__ import annotations

import logging
from typing import Optional


def _quiet_third_party() -> None:
    """Reduce verbosity of the Azure SDK and its HTTP stack."""
    for name in (
        "azure",
        "azure.core.pipeline.policies.http_logging_policy",
        "msrest",
        "urllib3",
    ):
        logging.getLogger(name).setLevel(logging.WARNING)


def configure_logging(level: int = logging.INFO, use_rich: bool = True) -> None:
    """Configure application logging.

    Args:
        level: Root logging level (default: logging.INFO).
        use_rich: If True, install a Rich handler with a concise format
            (no duplicated level text in messages).
    """
    _quiet_third_party()

    # Remove any pre-existing handlers to avoid duplicate output
    root = logging.getLogger()
    for h in list(root.handlers):
        root.removeHandler(h)

    root.setLevel(level)

    handler: Optional[logging.Handler] = None
    if use_rich:
        from rich.logging import RichHandler

        handler = RichHandler(
            show_time=True,
            show_path=False,
            markup=True,
            rich_tracebacks=True,
            enable_link_path=False,
        )
    else:
        handler = logging.StreamHandler()

    handler.setFormatter(logging.Formatter("%(message)s"))
    root.addHandler(handler)
