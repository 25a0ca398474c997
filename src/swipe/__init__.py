"""Swipe inbox core: classification, adaptive buffering and reversible actions."""

__version__ = "0.1.0"
