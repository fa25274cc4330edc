"""Utility functions for PhotoTran: result export."""

from photo_tran.utils.output import OutputFormatter, signal_dims

__all__ = [
    "OutputFormatter",
    "signal_dims",
]
