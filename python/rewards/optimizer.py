"""
Card Optimizer Module

Ranks cards for a spending pattern and turns reward results into
recommendations and per-category insights.
"""

import logging
import statistics
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from pathlib import Path

from statement_processor.models import Transaction

from .calculator import CENT, RewardCalculator
from .models import AggregateResult, BreakdownEntry, CalculationOptions, CardProfile

logger = logging.getLogger(__name__)

PRIORITY_ORDER = {"high": 3, "medium": 2, "low": 1}


@dataclass
class CardComparison:
    """One card's performance over a set of transactions."""

    card_name: str
    bank_name: str
    total_reward: Decimal
    avg_reward_rate: Decimal
    annual_fee: Decimal
    net_benefit: Decimal
    score: float
    result: AggregateResult

    def to_dict(self) -> dict:
        return {
            "card_name": self.card_name,
            "bank_name": self.bank_name,
            "total_reward": float(self.total_reward),
            "avg_reward_rate": round(float(self.avg_reward_rate), 2),
            "annual_fee": float(self.annual_fee),
            "net_benefit": float(self.net_benefit),
            "score": self.score,
            "category_breakdown": {
                k: v.to_dict() for k, v in self.result.category_breakdown.items()
            },
            "projections": self.result.projections.to_dict() if self.result.projections else None,
        }


@dataclass
class Recommendation:
    type: str  # 'card_switch', 'category_optimization', 'milestone'
    priority: str  # 'high', 'medium', 'low'
    title: str
    description: str
    details: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "priority": self.priority,
            "title": self.title,
            "description": self.description,
            **self.details,
        }


@dataclass
class CategoryInsight:
    category: str
    entry: BreakdownEntry
    performance_rating: str
    optimization_tip: str

    def to_dict(self) -> dict:
        return {
            "category": self.category,
            **self.entry.to_dict(),
            "performance_rating": self.performance_rating,
            "optimization_tip": self.optimization_tip,
        }


@dataclass
class CategoryAnalysis:
    """Per-category performance of one card."""

    insights: list[CategoryInsight]
    total_reward: Decimal
    avg_reward_rate: Decimal
    recommendations: list[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "category_analysis": [i.to_dict() for i in self.insights],
            "overall_performance": {
                "total_reward": float(self.total_reward),
                "avg_reward_rate": round(float(self.avg_reward_rate), 2),
            },
            "recommendations": self.recommendations,
        }


def performance_rating(rate: Decimal) -> str:
    if rate >= Decimal("2.5"):
        return "Excellent"
    if rate >= Decimal("1.5"):
        return "Good"
    if rate >= Decimal("1.0"):
        return "Average"
    return "Poor"


def optimization_tip(category: str, rate: Decimal) -> str:
    if rate < Decimal("1.0"):
        return f"Consider using a card with better {category} rewards"
    if rate > Decimal("2.0"):
        return f"Excellent rewards rate for {category}"
    return f"Good rewards rate for {category}"


class CardOptimizer:
    """Compares cards and suggests how to earn more."""

    def __init__(
        self,
        calculator: RewardCalculator | None = None,
        config_dir: Path | str | None = None
    ):
        self.calculator = calculator or RewardCalculator(config_dir)
        self.scoring = self.calculator.rules["scoring"]
        self.thresholds = self.calculator.rules["recommendations"]

    def calculate_card_score(self, result: AggregateResult, card: CardProfile) -> float:
        """Score = rate weight - fee impact + category consistency + features."""
        score = float(result.avg_reward_rate) * self.scoring["rate_weight"]
        score -= float(card.annual_fee) / self.scoring["fee_divisor"]

        category_rates = [float(entry.avg_rate) for entry in result.category_breakdown.values()]
        spread = statistics.pstdev(category_rates) if category_rates else 0.0
        score += self.scoring["consistency_base"] - spread

        features = self.scoring["premium_features"]
        if card.lounge_access:
            score += features["lounge_access"]
        if card.concierge_service:
            score += features["concierge_service"]
        if card.insurance_cover:
            score += features["insurance_cover"]

        return round(score, 2)

    def find_optimal_card(
        self,
        transactions: list[Transaction],
        cards: list[CardProfile]
    ) -> list[CardComparison]:
        """Rank cards by score, highest first. Ties keep input order."""
        comparisons = []

        for card in cards:
            result = self.calculator.calculate_total_rewards(
                transactions,
                card,
                CalculationOptions(include_projections=True, milestone_projections=False),
            )
            comparisons.append(CardComparison(
                card_name=card.name,
                bank_name=card.bank,
                total_reward=result.total_reward,
                avg_reward_rate=result.avg_reward_rate,
                annual_fee=card.annual_fee,
                net_benefit=result.total_reward - card.annual_fee,
                score=self.calculate_card_score(result, card),
                result=result,
            ))

        comparisons.sort(key=lambda c: c.score, reverse=True)
        logger.info(f"Compared {len(cards)} cards over {len(transactions)} transactions")
        return comparisons

    def generate_optimization_recommendations(
        self,
        transactions: list[Transaction],
        current_card: CardProfile,
        alternative_cards: list[CardProfile] | None = None
    ) -> list[Recommendation]:
        """Suggest card switches, weak categories and reachable milestones.

        A switch is only suggested when the alternative earns more in total
        and also leaves more after its annual fee.
        """
        recommendations = []
        current = self.calculator.calculate_total_rewards(transactions, current_card)
        current_net = current.total_reward - current_card.annual_fee

        if alternative_cards:
            ranked = self.find_optimal_card(transactions, alternative_cards)
            best = next(
                (
                    c for c in ranked
                    if c.total_reward > current.total_reward and c.net_benefit > current_net
                ),
                None,
            )
            if best:
                additional = best.total_reward - current.total_reward
                recommendations.append(Recommendation(
                    type="card_switch",
                    priority="high",
                    title="Consider switching to a better rewards card",
                    description=(
                        f"{best.card_name} could earn you ₹{additional:,.2f} more in rewards"
                    ),
                    details={
                        "current_card": current_card.name,
                        "recommended_card": best.card_name,
                        "additional_reward": float(additional),
                        "additional_net_benefit": float(best.net_benefit - current_net),
                    },
                ))

        recommendations.extend(self.find_category_optimizations(current))

        min_bonus = Decimal(str(self.thresholds["min_milestone_bonus"]))
        for opportunity in self.calculator.calculate_milestone_projections(current, current_card):
            if opportunity.potential_bonus > min_bonus:
                recommendations.append(Recommendation(
                    type="milestone",
                    priority="medium",
                    title="Milestone opportunity",
                    description=opportunity.recommendation,
                    details={"potential_bonus": float(opportunity.potential_bonus)},
                ))

        recommendations.sort(key=lambda r: PRIORITY_ORDER[r.priority], reverse=True)
        return recommendations

    def _weak_categories(self, result: AggregateResult) -> list[tuple[str, BreakdownEntry]]:
        """Categories with a low rate on material spend, biggest spend first."""
        low_rate = Decimal(str(self.thresholds["low_rate_percent"]))
        material = Decimal(str(self.thresholds["material_spend"]))
        weak = [
            (category, entry)
            for category, entry in result.category_breakdown.items()
            if entry.avg_rate < low_rate and entry.amount > material
        ]
        weak.sort(key=lambda item: item[1].amount, reverse=True)
        return weak[:int(self.thresholds["max_category_recommendations"])]

    def find_category_optimizations(self, result: AggregateResult) -> list[Recommendation]:
        optimizations = []
        for category, entry in self._weak_categories(result):
            rate = entry.avg_rate.quantize(Decimal("0.1"), ROUND_HALF_UP)
            optimizations.append(Recommendation(
                type="category_optimization",
                priority="medium",
                title=f"Low rewards on {category}",
                description=(
                    f"You're earning only {rate}% on ₹{entry.amount.quantize(CENT):,} "
                    f"{category} spending. Consider using a category-specific card."
                ),
                details={
                    "category": category,
                    "current_rate": round(float(entry.avg_rate), 2),
                    "spending": float(entry.amount),
                    "suggestion": f"Look for cards with higher {category} rewards",
                },
            ))
        return optimizations

    def analyze_categories(
        self,
        transactions: list[Transaction],
        card: CardProfile
    ) -> CategoryAnalysis:
        """Rate the card's performance in each spending category."""
        result = self.calculator.calculate_total_rewards(transactions, card)

        insights = [
            CategoryInsight(
                category=category,
                entry=entry,
                performance_rating=performance_rating(entry.avg_rate),
                optimization_tip=optimization_tip(category, entry.avg_rate),
            )
            for category, entry in result.category_breakdown.items()
        ]

        material = Decimal(str(self.thresholds["material_spend"]))
        poor = [i for i in insights if i.performance_rating == "Poor" and i.entry.amount > material]
        poor.sort(key=lambda i: i.entry.amount, reverse=True)

        recommendations = [
            {
                "category": i.category,
                "current_rate": round(float(i.entry.avg_rate), 2),
                "spending": float(i.entry.amount),
                "suggestion": (
                    f"Focus on improving {i.category} rewards - current rate of "
                    f"{i.entry.avg_rate.quantize(Decimal('0.1'), ROUND_HALF_UP)}% is below average"
                ),
            }
            for i in poor[:int(self.thresholds["max_category_recommendations"])]
        ]

        return CategoryAnalysis(
            insights=insights,
            total_reward=result.total_reward,
            avg_reward_rate=result.avg_reward_rate,
            recommendations=recommendations,
        )
