"""Autoimmune Reference Console: browse and maintain disease / autoantibody / autoantigen entries."""

__version__ = "1.0.0"
