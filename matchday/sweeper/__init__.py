"""Deadline sweeping and effect reconciliation."""

from .services import SweeperService

__all__ = ["SweeperService"]
