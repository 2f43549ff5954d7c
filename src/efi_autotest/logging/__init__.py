"""Logging utilities for efi-autotest."""

from efi_autotest.logging.config import JsonFormatter, setup_logging

__all__ = ["JsonFormatter", "setup_logging"]
