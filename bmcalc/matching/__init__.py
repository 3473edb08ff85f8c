"""Service reconciliation and learned match history."""

from bmcalc.matching.history import InMemoryMatchHistory, JsonFileMatchHistory, MatchHistory
from bmcalc.matching.reconciler import ServiceReconciler

__all__ = ["InMemoryMatchHistory", "JsonFileMatchHistory", "MatchHistory", "ServiceReconciler"]
