"""Tracker module."""

from .tracker import ISpanSink, ITracker, Tracker

__all__ = ["ISpanSink", "ITracker", "Tracker"]
