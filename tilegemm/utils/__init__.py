"""Utility modules for tilegemm."""

from tilegemm.utils.logging import MultilineFormatter, setup_logging

__all__ = ["setup_logging", "MultilineFormatter"]
