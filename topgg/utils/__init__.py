"""Utility helpers for the Top.gg client."""

from .logging_utils import setup_logging

__all__ = ["setup_logging"]
