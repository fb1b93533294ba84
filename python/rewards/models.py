"""
Reward Models

Card profiles, offers and the result records produced by the reward
calculator and card optimizer.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any

from statement_processor.errors import ValidationError
from statement_processor.models import Transaction


class BenefitType(Enum):
    """How an offer pays out."""
    CASHBACK = "cashback"
    POINTS = "points"
    SURCHARGE_WAIVER = "surcharge_waiver"
    DISCOUNT = "discount"


def _decimal(value: Any, name: str, errors: list[str], minimum: Decimal | None = Decimal("0")) -> Decimal | None:
    """Convert a loosely typed number, collecting a message on failure."""
    if value is None or isinstance(value, bool):
        errors.append(f"{name} must be a number")
        return None
    try:
        number = Decimal(str(value))
    except (InvalidOperation, ValueError):
        errors.append(f"{name} must be a number: {value!r}")
        return None
    if not number.is_finite():
        errors.append(f"{name} must be finite: {value!r}")
        return None
    if minimum is not None and number < minimum:
        errors.append(f"{name} must be >= {minimum}: {value}")
        return None
    return number


def _optional_decimal(data: dict, key: str, errors: list[str]) -> Decimal | None:
    if data.get(key) is None:
        return None
    return _decimal(data[key], key, errors)


def _mapping(data: dict, key: str, errors: list[str]) -> dict:
    value = data.get(key) or {}
    if not isinstance(value, dict):
        errors.append(f"{key} must be an object")
        return {}
    return value


def _sequence(data: dict, key: str, errors: list[str]) -> list:
    value = data.get(key) or []
    if not isinstance(value, list):
        errors.append(f"{key} must be a list")
        return []
    return value


def _flag(data: dict, key: str, errors: list[str]) -> bool:
    value = data.get(key, False)
    if value is None:
        return False
    if not isinstance(value, bool):
        errors.append(f"{key} must be true or false: {value!r}")
        return False
    return value


def _date(value: Any, name: str, errors: list[str]) -> date | None:
    if value is None or isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip()[:10])
    except ValueError:
        errors.append(f"{name} must be an ISO date: {value!r}")
        return None


@dataclass
class Offer:
    """Time-bounded bonus layered on top of a card's base rates."""

    rate: Decimal
    type: BenefitType = BenefitType.CASHBACK
    category: str | None = None
    merchants: list[str] = field(default_factory=list)
    min_spend: Decimal = Decimal("0")
    max_benefit: Decimal | None = None
    valid_from: date | None = None
    valid_to: date | None = None
    title: str = ""

    def is_applicable(self, txn: Transaction) -> bool:
        """Check date window, merchant or category scope and minimum spend."""
        if self.valid_from and txn.date < self.valid_from:
            return False
        if self.valid_to and txn.date > self.valid_to:
            return False

        if self.merchants or self.category:
            description = txn.description.lower()
            merchant_match = any(m.lower() in description for m in self.merchants)
            category_match = self.category is not None and txn.category == self.category
            if not (merchant_match or category_match):
                return False

        return txn.amount >= self.min_spend

    def to_dict(self) -> dict:
        return {
            "title": self.title,
            "rate": float(self.rate),
            "type": self.type.value,
            "category": self.category,
            "merchants": list(self.merchants),
            "min_spend": float(self.min_spend),
            "max_benefit": float(self.max_benefit) if self.max_benefit is not None else None,
            "valid_from": self.valid_from.isoformat() if self.valid_from else None,
            "valid_to": self.valid_to.isoformat() if self.valid_to else None,
        }

    @classmethod
    def from_dict(cls, data: dict, errors: list[str], prefix: str = "offer") -> "Offer | None":
        count = len(errors)

        rate = _decimal(data.get("rate"), f"{prefix}.rate", errors)
        try:
            benefit_type = BenefitType(data.get("type", BenefitType.CASHBACK.value))
        except ValueError:
            errors.append(f"{prefix}.type is not a known benefit type: {data.get('type')!r}")
            benefit_type = None

        min_spend = _decimal(data.get("min_spend", 0), f"{prefix}.min_spend", errors)
        max_benefit = None
        if data.get("max_benefit") is not None:
            max_benefit = _decimal(data["max_benefit"], f"{prefix}.max_benefit", errors)

        valid_from = _date(data.get("valid_from"), f"{prefix}.valid_from", errors)
        valid_to = _date(data.get("valid_to"), f"{prefix}.valid_to", errors)
        if valid_from and valid_to and valid_from > valid_to:
            errors.append(f"{prefix} valid_from is after valid_to")

        merchants = data.get("merchants") or []
        if not isinstance(merchants, list):
            errors.append(f"{prefix}.merchants must be a list")
            merchants = []

        if len(errors) > count:
            return None

        return cls(
            rate=rate,
            type=benefit_type,
            category=data.get("category"),
            merchants=[str(m) for m in merchants],
            min_spend=min_spend,
            max_benefit=max_benefit,
            valid_from=valid_from,
            valid_to=valid_to,
            title=str(data.get("title", "")),
        )


@dataclass
class Milestone:
    """Extra rate granted when monthly spend crosses a threshold."""

    threshold: Decimal
    bonus_rate: Decimal

    def to_dict(self) -> dict:
        return {"threshold": float(self.threshold), "bonus_rate": float(self.bonus_rate)}


@dataclass
class CardProfile:
    """Reward-earning rules of one credit card. Rates are percentages."""

    name: str
    bank: str = ""
    rates: dict[str, Decimal] = field(default_factory=dict)
    default_rate: Decimal | None = None
    primary_category: str | None = None
    primary_rate: Decimal | None = None
    weekend_dining_bonus: Decimal = Decimal("0")
    online_shopping_bonus: Decimal = Decimal("0")
    premium_categories: list[str] = field(default_factory=list)
    premium_bonus: Decimal = Decimal("0")
    milestones: list[Milestone] = field(default_factory=list)
    monthly_caps: dict[str, Decimal] = field(default_factory=dict)
    annual_cap: Decimal | None = None
    annual_fee: Decimal = Decimal("0")
    offers: list[Offer] = field(default_factory=list)
    point_value: Decimal = Decimal("1")
    lounge_access: bool = False
    concierge_service: bool = False
    insurance_cover: bool = False

    def __post_init__(self):
        self.milestones = sorted(self.milestones, key=lambda m: m.threshold)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "bank": self.bank,
            "rates": {k: float(v) for k, v in self.rates.items()},
            "default_rate": float(self.default_rate) if self.default_rate is not None else None,
            "primary_category": self.primary_category,
            "primary_rate": float(self.primary_rate) if self.primary_rate is not None else None,
            "weekend_dining_bonus": float(self.weekend_dining_bonus),
            "online_shopping_bonus": float(self.online_shopping_bonus),
            "premium_categories": list(self.premium_categories),
            "premium_bonus": float(self.premium_bonus),
            "milestones": [m.to_dict() for m in self.milestones],
            "monthly_caps": {k: float(v) for k, v in self.monthly_caps.items()},
            "annual_cap": float(self.annual_cap) if self.annual_cap is not None else None,
            "annual_fee": float(self.annual_fee),
            "offers": [o.to_dict() for o in self.offers],
            "point_value": float(self.point_value),
            "lounge_access": self.lounge_access,
            "concierge_service": self.concierge_service,
            "insurance_cover": self.insurance_cover,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CardProfile":
        """Validate and build a card profile.

        Raises:
            ValidationError: Listing every invalid field
        """
        if not isinstance(data, dict):
            raise ValidationError("Invalid card profile", ["Card profile must be an object"])

        errors: list[str] = []

        name = str(data.get("name") or "").strip()
        if not name:
            errors.append("name is required")

        rates = {}
        for category, rate in _mapping(data, "rates", errors).items():
            value = _decimal(rate, f"rates.{category}", errors)
            if value is not None:
                rates[category] = value

        monthly_caps = {}
        for category, cap in _mapping(data, "monthly_caps", errors).items():
            value = _decimal(cap, f"monthly_caps.{category}", errors)
            if value is not None:
                monthly_caps[category] = value

        milestones = []
        for i, item in enumerate(_sequence(data, "milestones", errors)):
            if not isinstance(item, dict):
                errors.append(f"milestones[{i}] must be an object")
                continue
            threshold = _decimal(item.get("threshold"), f"milestones[{i}].threshold", errors, Decimal("0.01"))
            bonus_rate = _decimal(item.get("bonus_rate"), f"milestones[{i}].bonus_rate", errors)
            if threshold is not None and bonus_rate is not None:
                milestones.append(Milestone(threshold=threshold, bonus_rate=bonus_rate))

        offers = []
        for i, item in enumerate(_sequence(data, "offers", errors)):
            if not isinstance(item, dict):
                errors.append(f"offers[{i}] must be an object")
                continue
            offer = Offer.from_dict(item, errors, prefix=f"offers[{i}]")
            if offer:
                offers.append(offer)

        premium_categories = _sequence(data, "premium_categories", errors)

        point_value = _decimal(data.get("point_value", 1), "point_value", errors)
        annual_fee = _decimal(data.get("annual_fee", 0), "annual_fee", errors)
        weekend_dining_bonus = _decimal(data.get("weekend_dining_bonus", 0), "weekend_dining_bonus", errors)
        online_shopping_bonus = _decimal(data.get("online_shopping_bonus", 0), "online_shopping_bonus", errors)
        premium_bonus = _decimal(data.get("premium_bonus", 0), "premium_bonus", errors)
        default_rate = _optional_decimal(data, "default_rate", errors)
        primary_rate = _optional_decimal(data, "primary_rate", errors)
        annual_cap = _optional_decimal(data, "annual_cap", errors)
        lounge_access = _flag(data, "lounge_access", errors)
        concierge_service = _flag(data, "concierge_service", errors)
        insurance_cover = _flag(data, "insurance_cover", errors)

        if errors:
            raise ValidationError(f"Invalid card profile: {name or 'unnamed'}", errors)

        return cls(
            name=name,
            bank=str(data.get("bank") or ""),
            rates=rates,
            default_rate=default_rate,
            primary_category=data.get("primary_category"),
            primary_rate=primary_rate,
            weekend_dining_bonus=weekend_dining_bonus,
            online_shopping_bonus=online_shopping_bonus,
            premium_categories=[str(c) for c in premium_categories],
            premium_bonus=premium_bonus,
            milestones=milestones,
            monthly_caps=monthly_caps,
            annual_cap=annual_cap,
            annual_fee=annual_fee,
            offers=offers,
            point_value=point_value,
            lounge_access=lounge_access,
            concierge_service=concierge_service,
            insurance_cover=insurance_cover,
        )


@dataclass
class RewardContext:
    """Running totals seen before the transaction being priced."""

    monthly_spending: Decimal = Decimal("0")
    is_online: bool = False
    category_month_reward: Decimal = Decimal("0")
    annual_reward: Decimal = Decimal("0")


@dataclass
class CalculationOptions:
    include_projections: bool = False
    annual_projection: bool = True
    milestone_projections: bool = True


@dataclass
class RewardBreakdown:
    """Rate components in percent."""

    base_rate: Decimal = Decimal("0")
    category_bonus: Decimal = Decimal("0")
    milestone_bonus: Decimal = Decimal("0")
    offer_bonus: Decimal = Decimal("0")

    @property
    def total_rate(self) -> Decimal:
        return self.base_rate + self.category_bonus + self.milestone_bonus + self.offer_bonus

    def to_dict(self) -> dict:
        return {
            "base_rate": float(self.base_rate),
            "category_bonus": float(self.category_bonus),
            "milestone_bonus": float(self.milestone_bonus),
            "offer_bonus": float(self.offer_bonus),
        }


@dataclass
class RewardResult:
    """Reward earned by one transaction on one card."""

    reward: Decimal
    rate: Decimal
    breakdown: RewardBreakdown = field(default_factory=RewardBreakdown)
    capped: bool = False
    reward_before_cap: Decimal = Decimal("0")
    applied_offers: list[str] = field(default_factory=list)
    details: str | None = None

    def to_dict(self) -> dict:
        return {
            "reward": float(self.reward),
            "rate": float(self.rate),
            "breakdown": self.breakdown.to_dict(),
            "capped": self.capped,
            "reward_before_cap": float(self.reward_before_cap),
            "applied_offers": list(self.applied_offers),
            "details": self.details,
        }


@dataclass
class BreakdownEntry:
    """Spend and reward totals for one category or month."""

    amount: Decimal = Decimal("0")
    reward: Decimal = Decimal("0")
    avg_rate: Decimal = Decimal("0")
    transactions: int = 0

    def add(self, amount: Decimal, reward: Decimal) -> None:
        self.amount += amount
        self.reward += reward
        self.transactions += 1
        self.avg_rate = (self.reward / self.amount * 100) if self.amount else Decimal("0")

    def to_dict(self) -> dict:
        return {
            "amount": float(self.amount),
            "reward": float(self.reward),
            "avg_rate": round(float(self.avg_rate), 2),
            "transactions": self.transactions,
        }


@dataclass
class AnnualProjection:
    expected_reward: Decimal
    expected_spending: Decimal
    avg_rate: Decimal

    def to_dict(self) -> dict:
        return {
            "expected_reward": float(self.expected_reward),
            "expected_spending": float(self.expected_spending),
            "avg_rate": round(float(self.avg_rate), 2),
        }


@dataclass
class MilestoneOpportunity:
    """Next unreached milestone for a month."""

    month: str
    milestone: Decimal
    bonus_rate: Decimal
    current_spending: Decimal
    shortfall: Decimal
    potential_bonus: Decimal
    recommendation: str

    def to_dict(self) -> dict:
        return {
            "month": self.month,
            "milestone": float(self.milestone),
            "bonus_rate": float(self.bonus_rate),
            "current_spending": float(self.current_spending),
            "shortfall": float(self.shortfall),
            "potential_bonus": float(self.potential_bonus),
            "recommendation": self.recommendation,
        }


@dataclass
class Projections:
    annual: AnnualProjection | None = None
    milestones: list[MilestoneOpportunity] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "annual": self.annual.to_dict() if self.annual else None,
            "milestones": [m.to_dict() for m in self.milestones],
        }


@dataclass
class AggregateResult:
    """Rewards for a set of transactions on one card."""

    total_reward: Decimal = Decimal("0")
    total_amount: Decimal = Decimal("0")
    avg_reward_rate: Decimal = Decimal("0")
    category_breakdown: dict[str, BreakdownEntry] = field(default_factory=dict)
    monthly_breakdown: dict[str, BreakdownEntry] = field(default_factory=dict)
    capped_count: int = 0
    results: list[RewardResult] = field(default_factory=list)
    projections: Projections | None = None

    def to_dict(self) -> dict:
        return {
            "total_reward": float(self.total_reward),
            "total_amount": float(self.total_amount),
            "avg_reward_rate": round(float(self.avg_reward_rate), 2),
            "category_breakdown": {k: v.to_dict() for k, v in self.category_breakdown.items()},
            "monthly_breakdown": {k: v.to_dict() for k, v in self.monthly_breakdown.items()},
            "capped_count": self.capped_count,
            "results": [r.to_dict() for r in self.results],
            "projections": self.projections.to_dict() if self.projections else None,
        }
