"""Stops, targets and capital allocation."""

from .capital_allocator import CapitalAllocator
from .stops import ExitPlan, plan_exits

__all__ = ["CapitalAllocator", "ExitPlan", "plan_exits"]
