"""
Rewards Module

Reward calculation, card comparison and optimization recommendations for
categorized card transactions.
"""

from .calculator import RewardCalculator
from .models import (
    AggregateResult,
    AnnualProjection,
    BenefitType,
    BreakdownEntry,
    CalculationOptions,
    CardProfile,
    Milestone,
    MilestoneOpportunity,
    Offer,
    Projections,
    RewardBreakdown,
    RewardContext,
    RewardResult,
)
from .optimizer import CardComparison, CardOptimizer, CategoryAnalysis, Recommendation

__all__ = [
    # Calculation
    "RewardCalculator",
    "RewardContext",
    "CalculationOptions",
    "RewardResult",
    "RewardBreakdown",
    "AggregateResult",
    "BreakdownEntry",
    "Projections",
    "AnnualProjection",
    "MilestoneOpportunity",
    # Cards
    "CardProfile",
    "Offer",
    "Milestone",
    "BenefitType",
    # Optimization
    "CardOptimizer",
    "CardComparison",
    "Recommendation",
    "CategoryAnalysis",
]
