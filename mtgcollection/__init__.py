"""Backend and client helpers for the MTG collection manager."""

__version__ = '0.3.0'
