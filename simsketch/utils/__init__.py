"""Utility helpers shared by the simsketch CLI."""

from .logging_setup import log_operation, setup_logging

__all__ = ["log_operation", "setup_logging"]
