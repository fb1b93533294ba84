"""
Rewards API Routes

Reward calculation, card comparison, optimization and category analysis.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Literal

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from rewards import CalculationOptions, CardOptimizer, RewardCalculator, RewardContext

from ..dependencies import get_card_optimizer, get_reward_calculator
from ..schemas import TransactionIn, to_card, to_transactions

router = APIRouter(prefix="/rewards", tags=["rewards"])


class OptionsIn(BaseModel):
    include_projections: bool = True
    annual_projection: bool = True
    milestone_projections: bool = True


class CalculateRequest(BaseModel):
    transactions: list[TransactionIn] = Field(..., min_length=1)
    card: dict[str, Any]
    options: OptionsIn = Field(default_factory=OptionsIn)


class ContextIn(BaseModel):
    monthly_spending: float = Field(0, ge=0)
    is_online: bool | None = None
    category_month_reward: float = Field(0, ge=0)
    annual_reward: float = Field(0, ge=0)


class CalculateTransactionRequest(BaseModel):
    transaction: TransactionIn
    card: dict[str, Any]
    context: ContextIn = Field(default_factory=ContextIn)


class CompareRequest(BaseModel):
    transactions: list[TransactionIn] = Field(..., min_length=1)
    cards: list[dict[str, Any]] = Field(..., min_length=2, max_length=5)


class OptimizeRequest(BaseModel):
    transactions: list[TransactionIn] = Field(..., min_length=1)
    current_card: dict[str, Any]
    alternative_cards: list[dict[str, Any]] = Field(default_factory=list)


class ProjectionsRequest(BaseModel):
    transactions: list[TransactionIn] = Field(..., min_length=1)
    card: dict[str, Any]
    projection_type: Literal["monthly", "quarterly", "annual"] = "annual"


class CategoryAnalysisRequest(BaseModel):
    transactions: list[TransactionIn] = Field(..., min_length=1)
    card: dict[str, Any]


@router.post("/calculate")
async def calculate_rewards(
    request: CalculateRequest,
    calculator: RewardCalculator = Depends(get_reward_calculator),
) -> dict:
    """Calculate rewards for a set of transactions on one card."""
    card = to_card(request.card)
    result = calculator.calculate_total_rewards(
        to_transactions(request.transactions),
        card,
        CalculationOptions(**request.options.model_dump()),
    )
    return {
        "success": True,
        "results": result.to_dict(),
        "card_name": card.name,
        "calculation_date": datetime.now().isoformat(),
    }


@router.post("/calculate-transaction")
async def calculate_transaction_reward(
    request: CalculateTransactionRequest,
    calculator: RewardCalculator = Depends(get_reward_calculator),
) -> dict:
    """Calculate the reward for a single transaction."""
    card = to_card(request.card)
    txn = request.transaction.to_transaction()

    is_online = request.context.is_online
    if is_online is None:
        is_online = calculator.detect_online_transaction(txn)

    context = RewardContext(
        monthly_spending=Decimal(str(request.context.monthly_spending)),
        is_online=is_online,
        category_month_reward=Decimal(str(request.context.category_month_reward)),
        annual_reward=Decimal(str(request.context.annual_reward)),
    )
    result = calculator.calculate_transaction_reward(txn, card, context)
    return {
        "success": True,
        "transaction": txn.to_dict(),
        "reward_result": result.to_dict(),
        "card_name": card.name,
        "calculation_date": datetime.now().isoformat(),
    }


@router.post("/compare")
async def compare_cards(
    request: CompareRequest,
    optimizer: CardOptimizer = Depends(get_card_optimizer),
) -> dict:
    """Rank two to five cards for the same transactions."""
    cards = [to_card(card) for card in request.cards]
    comparison = optimizer.find_optimal_card(to_transactions(request.transactions), cards)
    return {
        "success": True,
        "comparison": [c.to_dict() for c in comparison],
        "best_card": comparison[0].to_dict(),
        "transaction_count": len(request.transactions),
        "comparison_date": datetime.now().isoformat(),
    }


@router.post("/optimize")
async def optimize(
    request: OptimizeRequest,
    optimizer: CardOptimizer = Depends(get_card_optimizer),
) -> dict:
    """Recommend card switches, weak categories and milestones."""
    current_card = to_card(request.current_card)
    alternatives = [to_card(card) for card in request.alternative_cards]
    transactions = to_transactions(request.transactions)

    recommendations = optimizer.generate_optimization_recommendations(
        transactions, current_card, alternatives
    )
    current_performance = optimizer.calculator.calculate_total_rewards(
        transactions, current_card, CalculationOptions(include_projections=True)
    )
    return {
        "success": True,
        "recommendations": [r.to_dict() for r in recommendations],
        "current_performance": current_performance.to_dict(),
        "optimization_date": datetime.now().isoformat(),
    }


@router.post("/projections")
async def projections(
    request: ProjectionsRequest,
    calculator: RewardCalculator = Depends(get_reward_calculator),
) -> dict:
    """Project annual rewards and reachable milestones."""
    result = calculator.calculate_total_rewards(
        to_transactions(request.transactions),
        to_card(request.card),
        CalculationOptions(
            include_projections=True,
            annual_projection=request.projection_type == "annual",
            milestone_projections=True,
        ),
    )
    return {
        "success": True,
        "projections": result.projections.to_dict(),
        "current_performance": {
            "total_reward": float(result.total_reward),
            "avg_reward_rate": round(float(result.avg_reward_rate), 2),
            "category_breakdown": {k: v.to_dict() for k, v in result.category_breakdown.items()},
        },
        "projection_type": request.projection_type,
        "projection_date": datetime.now().isoformat(),
    }


@router.post("/category-analysis")
async def category_analysis(
    request: CategoryAnalysisRequest,
    optimizer: CardOptimizer = Depends(get_card_optimizer),
) -> dict:
    """Rate the card in each spending category."""
    analysis = optimizer.analyze_categories(
        to_transactions(request.transactions), to_card(request.card)
    )
    return {
        "success": True,
        **analysis.to_dict(),
        "analysis_date": datetime.now().isoformat(),
    }
