"""Slotted-page record storage, buffer replacement policies and shared storage types."""

__version__ = "0.1.0"
__all__ = ["common", "replacement", "record_manager"]