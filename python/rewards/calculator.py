"""
Reward Calculator Module

Prices each transaction against a card profile: base rate, category bonuses,
monthly milestones and offers, limited by monthly category caps and the
annual cap.
"""

import copy
import logging
from decimal import ROUND_HALF_UP, Decimal
from pathlib import Path

import yaml

from statement_processor.models import DEFAULT_CATEGORY, Transaction

from .models import (
    AggregateResult,
    AnnualProjection,
    BenefitType,
    BreakdownEntry,
    CalculationOptions,
    CardProfile,
    MilestoneOpportunity,
    Offer,
    Projections,
    RewardBreakdown,
    RewardContext,
    RewardResult,
)

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
ZERO = Decimal("0")
HUNDRED = Decimal("100")

DEFAULT_RULES = {
    "default_rates": {
        "fuel": 1.0,
        "grocery": 1.0,
        "food": 1.0,
        "shopping": 1.0,
        "travel": 1.0,
        "entertainment": 1.0,
        "utilities": 0.5,
        "others": 0.5,
    },
    "fallback_rate": 0.5,
    "online_keywords": [
        "amazon", "flipkart", "myntra", "paytm", "phonepe",
        "googlepay", "upi", "online", "internet", "web",
    ],
    "projections": {"max_milestone_opportunities": 5},
    "recommendations": {
        "low_rate_percent": 1.0,
        "material_spend": 5000,
        "max_category_recommendations": 3,
        "min_milestone_bonus": 100,
    },
    "scoring": {
        "rate_weight": 20,
        "fee_divisor": 1000,
        "consistency_base": 10,
        "premium_features": {
            "lounge_access": 5,
            "concierge_service": 3,
            "insurance_cover": 2,
        },
    },
}

WEEKEND_DAYS = (5, 6)


def load_reward_rules(config_dir: Path) -> dict:
    """Load reward_rules.yaml over the built-in defaults."""
    rules = copy.deepcopy(DEFAULT_RULES)
    rules_file = config_dir / "reward_rules.yaml"

    if not rules_file.exists():
        logger.warning(f"Reward rules file not found: {rules_file}, using defaults")
        return rules

    with open(rules_file) as f:
        loaded = yaml.safe_load(f) or {}

    for key, value in loaded.items():
        if isinstance(value, dict) and isinstance(rules.get(key), dict):
            rules[key].update(value)
        else:
            rules[key] = value
    return rules


class RewardCalculator:
    """Calculates card rewards for transactions."""

    def __init__(self, config_dir: Path | str | None = None):
        """Initialize calculator with global reward rules.

        Args:
            config_dir: Path to configuration directory
        """
        self.config_dir = Path(config_dir) if config_dir else Path(__file__).parent.parent.parent / "config"
        self.rules = load_reward_rules(self.config_dir)
        self.default_rates = {
            category: Decimal(str(rate))
            for category, rate in self.rules["default_rates"].items()
        }
        self.fallback_rate = Decimal(str(self.rules["fallback_rate"]))
        self.online_keywords = [k.lower() for k in self.rules["online_keywords"]]

    # ==================== Single Transaction ====================

    def calculate_transaction_reward(
        self,
        txn: Transaction,
        card: CardProfile,
        context: RewardContext | None = None
    ) -> RewardResult:
        """Calculate the reward for one transaction.

        Args:
            txn: Categorized transaction
            card: Card profile
            context: Running totals before this transaction

        Returns:
            RewardResult; a zero reward if calculation fails
        """
        context = context or RewardContext()
        category = txn.category or DEFAULT_CATEGORY

        try:
            breakdown = RewardBreakdown(
                base_rate=self.get_base_rate(card, category),
                category_bonus=self.get_category_bonus(card, txn, context),
                milestone_bonus=self.get_milestone_bonus(card, txn.amount, context.monthly_spending),
            )

            offer_value, applied_offers, offer_limited = self.get_offer_value(card, txn)
            if txn.amount:
                breakdown.offer_bonus = (offer_value / txn.amount * HUNDRED).quantize(Decimal("0.0001"), ROUND_HALF_UP)

            rate_value = txn.amount * (
                breakdown.base_rate + breakdown.category_bonus + breakdown.milestone_bonus
            ) / HUNDRED
            reward_before_cap = rate_value + offer_value

            reward, cap_hit = self.apply_caps(reward_before_cap, card, category, context)

            return RewardResult(
                reward=reward.quantize(CENT, ROUND_HALF_UP),
                rate=breakdown.total_rate.quantize(CENT, ROUND_HALF_UP),
                breakdown=breakdown,
                capped=cap_hit or offer_limited,
                reward_before_cap=reward_before_cap.quantize(CENT, ROUND_HALF_UP),
                applied_offers=applied_offers,
            )

        except Exception as e:
            logger.error(f"Reward calculation error for {txn.id} on {card.name}: {e}")
            return RewardResult(reward=ZERO, rate=ZERO, details="Calculation error")

    def get_base_rate(self, card: CardProfile, category: str) -> Decimal:
        """Card rate, then primary rate, then card default, then global default."""
        if category in card.rates:
            return card.rates[category]
        if card.primary_category == category and card.primary_rate is not None:
            return card.primary_rate
        if card.default_rate is not None:
            return card.default_rate
        return self.default_rates.get(category, self.fallback_rate)

    def get_category_bonus(
        self,
        card: CardProfile,
        txn: Transaction,
        context: RewardContext
    ) -> Decimal:
        bonus = ZERO

        if txn.category == "food" and txn.date.weekday() in WEEKEND_DAYS:
            bonus += card.weekend_dining_bonus

        if txn.category == "shopping" and context.is_online:
            bonus += card.online_shopping_bonus

        if txn.category in card.premium_categories:
            bonus += card.premium_bonus

        return bonus

    def get_milestone_bonus(
        self,
        card: CardProfile,
        amount: Decimal,
        monthly_spending: Decimal
    ) -> Decimal:
        """Bonus rate of the first milestone this transaction crosses."""
        after = monthly_spending + amount
        for milestone in card.milestones:
            if monthly_spending < milestone.threshold <= after:
                return milestone.bonus_rate
        return ZERO

    def get_offer_value(
        self,
        card: CardProfile,
        txn: Transaction
    ) -> tuple[Decimal, list[str], bool]:
        """Sum the rupee value of applicable offers.

        Returns:
            Tuple of (value, applied offer titles, whether any max_benefit applied)
        """
        total = ZERO
        applied = []
        limited = False

        for offer in card.offers:
            if not offer.is_applicable(txn):
                continue

            value = self.evaluate_offer(offer, txn, card)
            if offer.max_benefit is not None and value > offer.max_benefit:
                value = offer.max_benefit
                limited = True

            if value > 0:
                total += value
                applied.append(offer.title or offer.type.value)

        return total, applied, limited

    def evaluate_offer(self, offer: Offer, txn: Transaction, card: CardProfile) -> Decimal:
        """Rupee value of one offer for one transaction."""
        value = txn.amount * offer.rate / HUNDRED

        if offer.type is BenefitType.CASHBACK:
            return value
        elif offer.type is BenefitType.POINTS:
            return value * card.point_value
        elif offer.type is BenefitType.SURCHARGE_WAIVER:
            return value if txn.category == "fuel" else ZERO
        elif offer.type is BenefitType.DISCOUNT:
            return value
        else:
            raise ValueError(f"Unhandled benefit type: {offer.type}")

    def apply_caps(
        self,
        reward: Decimal,
        card: CardProfile,
        category: str,
        context: RewardContext
    ) -> tuple[Decimal, bool]:
        """Limit a reward by what is left of the monthly category and annual caps."""
        limited = reward

        if category in card.monthly_caps:
            remaining = max(card.monthly_caps[category] - context.category_month_reward, ZERO)
            limited = min(limited, remaining)

        if card.annual_cap is not None:
            remaining = max(card.annual_cap - context.annual_reward, ZERO)
            limited = min(limited, remaining)

        return limited, limited < reward

    def detect_online_transaction(self, txn: Transaction) -> bool:
        """Keyword guess at whether a purchase was made online."""
        description = txn.description.lower()
        return any(keyword in description for keyword in self.online_keywords)

    # ==================== Aggregates ====================

    def calculate_total_rewards(
        self,
        transactions: list[Transaction],
        card: CardProfile,
        options: CalculationOptions | None = None
    ) -> AggregateResult:
        """Calculate rewards for a set of transactions.

        Transactions are priced in date order so milestones and caps see the
        spend and rewards that came before them. Per-transaction results are
        returned in input order.
        """
        options = options or CalculationOptions()
        result = AggregateResult()
        results: list[RewardResult | None] = [None] * len(transactions)

        monthly_spending: dict[str, Decimal] = {}
        category_month_reward: dict[tuple[str, str], Decimal] = {}
        annual_reward: dict[int, Decimal] = {}

        order = sorted(range(len(transactions)), key=lambda i: transactions[i].date)

        for i in order:
            txn = transactions[i]
            month = txn.month
            category = txn.category or DEFAULT_CATEGORY
            year = txn.date.year

            context = RewardContext(
                monthly_spending=monthly_spending.get(month, ZERO),
                is_online=self.detect_online_transaction(txn),
                category_month_reward=category_month_reward.get((month, category), ZERO),
                annual_reward=annual_reward.get(year, ZERO),
            )
            reward_result = self.calculate_transaction_reward(txn, card, context)
            results[i] = reward_result

            monthly_spending[month] = context.monthly_spending + txn.amount
            category_month_reward[(month, category)] = context.category_month_reward + reward_result.reward
            annual_reward[year] = context.annual_reward + reward_result.reward

            result.total_reward += reward_result.reward
            result.total_amount += txn.amount
            result.category_breakdown.setdefault(category, BreakdownEntry()).add(txn.amount, reward_result.reward)
            result.monthly_breakdown.setdefault(month, BreakdownEntry()).add(txn.amount, reward_result.reward)
            if reward_result.capped:
                result.capped_count += 1

        result.results = results
        if result.total_amount:
            result.avg_reward_rate = result.total_reward / result.total_amount * HUNDRED

        if options.include_projections:
            result.projections = self.calculate_projections(result, card, options)

        return result

    def calculate_projections(
        self,
        aggregate: AggregateResult,
        card: CardProfile,
        options: CalculationOptions
    ) -> Projections:
        projections = Projections()

        months = len(aggregate.monthly_breakdown)
        if options.annual_projection and months:
            projections.annual = AnnualProjection(
                expected_reward=(aggregate.total_reward / months * 12).quantize(CENT, ROUND_HALF_UP),
                expected_spending=(aggregate.total_amount / months * 12).quantize(CENT, ROUND_HALF_UP),
                avg_rate=aggregate.avg_reward_rate,
            )

        if options.milestone_projections:
            projections.milestones = self.calculate_milestone_projections(aggregate, card)

        return projections

    def calculate_milestone_projections(
        self,
        aggregate: AggregateResult,
        card: CardProfile
    ) -> list[MilestoneOpportunity]:
        """Next unreached milestone per month, best potential bonus first."""
        opportunities = []

        for month, entry in aggregate.monthly_breakdown.items():
            milestone = next((m for m in card.milestones if entry.amount < m.threshold), None)
            if not milestone:
                continue

            shortfall = milestone.threshold - entry.amount
            opportunities.append(MilestoneOpportunity(
                month=month,
                milestone=milestone.threshold,
                bonus_rate=milestone.bonus_rate,
                current_spending=entry.amount,
                shortfall=shortfall,
                potential_bonus=(entry.amount * milestone.bonus_rate / HUNDRED).quantize(CENT, ROUND_HALF_UP),
                recommendation=(
                    f"Spend ₹{shortfall:,.2f} more in {month} to unlock "
                    f"{milestone.bonus_rate}% milestone bonus"
                ),
            ))

        opportunities.sort(key=lambda o: o.potential_bonus, reverse=True)
        return opportunities[:int(self.rules["projections"]["max_milestone_opportunities"])]
