"""Scenario simulator for the task-status consumer."""

from .sim import ISim, Sim

__all__ = ["ISim", "Sim"]
