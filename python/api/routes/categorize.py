"""
Categorization API Routes

Categorize transactions and record user corrections.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel, Field

from statement_processor import TransactionCategorizer, categorization_stats
from statement_processor.classifier import CATEGORY_DESCRIPTIONS

from ..auth import User, get_current_user
from ..dependencies import get_categorizer
from ..schemas import TransactionIn, to_transactions

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/categorize", tags=["categorize"])


class CategorizeRequest(BaseModel):
    transactions: list[TransactionIn] = Field(..., min_length=1)
    learn: bool = False


class FeedbackRequest(BaseModel):
    transaction: TransactionIn
    category: str


@router.post("")
async def categorize_transactions(
    request: CategorizeRequest,
    user: User = Depends(get_current_user),
    categorizer: TransactionCategorizer = Depends(get_categorizer),
) -> dict:
    """Categorize transactions, preserving input order.

    With ``learn`` set, confident results are stored as patterns for the user.
    """
    transactions = to_transactions(request.transactions)
    results = await run_in_threadpool(categorizer.categorize_batch, transactions, user.user_id)

    learned = 0
    if request.learn:
        learned = categorizer.learn(transactions, results, user.user_id)

    return {
        "results": [
            {"transaction_id": txn.id, **res.to_dict()}
            for txn, res in zip(transactions, results)
        ],
        "stats": categorization_stats(results),
        "learned_patterns": learned,
    }


@router.post("/feedback")
async def record_feedback(
    request: FeedbackRequest,
    user: User = Depends(get_current_user),
    categorizer: TransactionCategorizer = Depends(get_categorizer),
) -> dict:
    """Record a user's category correction."""
    category = request.category.strip().lower()
    if category not in CATEGORY_DESCRIPTIONS:
        raise HTTPException(status_code=422, detail=f"Unknown category: {request.category}")

    result = categorizer.record_feedback(user.user_id, request.transaction.to_transaction(), category)
    return {"success": True, **result.to_dict()}


@router.delete("/patterns")
async def clear_patterns(
    user: User = Depends(get_current_user),
    categorizer: TransactionCategorizer = Depends(get_categorizer),
) -> dict:
    """Forget every pattern learned for the user."""
    categorizer.clear_user_patterns(user.user_id)
    return {"success": True}
