"""
Utilities package for the DeFi Event Generator.

Exports shared helpers for logging. Keep this package lightweight and free of
domain-specific logic.
"""

from defi_event_generator.utils.logging import configure_logging, get_logger

__all__ = [
    "configure_logging",
    "get_logger",
]
