"""Command line utilities for efi-autotest."""

from efi_autotest.cli.app import main, run_cli
from efi_autotest.cli.errors import CliError

__all__ = ["CliError", "main", "run_cli"]
