"""Persistence of processing state."""
from .sqlite import ProcessingStore

__all__ = ["ProcessingStore"]
