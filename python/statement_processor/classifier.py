"""
External Classifier Module

Asks Claude for a spending category when local rules are not confident.
"""

import json
import logging
import os
import re
from dataclasses import dataclass
from decimal import Decimal

import anthropic

from .errors import ClassifierUnavailable

logger = logging.getLogger(__name__)

CATEGORY_DESCRIPTIONS = {
    "food": "restaurants, food delivery, dining",
    "fuel": "petrol stations, gas",
    "grocery": "supermarkets, grocery stores",
    "shopping": "online shopping, retail, fashion",
    "travel": "transport, hotels, flights",
    "entertainment": "movies, streaming, games",
    "utilities": "electricity, phone, internet",
    "medical": "hospitals, pharmacy, healthcare",
    "atm": "cash withdrawals",
    "transfer": "money transfers, UPI",
    "insurance": "insurance premiums",
    "investment": "mutual funds, trading",
    "others": "if none fit",
}

DEFAULT_CONFIDENCE = 0.5


@dataclass
class ClassifierVerdict:
    """Category suggested by the external classifier."""

    category: str
    confidence: float
    reasoning: str | None = None


class ClaudeClassifier:
    """Categorizes a single transaction with the Claude API."""

    DEFAULT_MODEL = "claude-sonnet-4-5-20250929"

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        client: anthropic.Anthropic | None = None,
        max_tokens: int = 200
    ):
        """Initialize the classifier.

        Args:
            api_key: Anthropic API key (defaults to ANTHROPIC_API_KEY)
            model: Claude model (defaults to CLASSIFIER_MODEL, then DEFAULT_MODEL)
            client: Preconfigured client, mainly for tests
            max_tokens: Response token limit
        """
        self.model = model or os.getenv("CLASSIFIER_MODEL") or self.DEFAULT_MODEL
        self.max_tokens = max_tokens
        self.client = client or anthropic.Anthropic(
            api_key=api_key or os.getenv("ANTHROPIC_API_KEY")
        )

    def build_prompt(self, description: str, amount: Decimal | float) -> str:
        categories = "\n".join(
            f"- {name} ({hint})" for name, hint in CATEGORY_DESCRIPTIONS.items()
        )
        return f"""Categorize this credit card transaction:

Description: "{description}"
Amount: ₹{amount}

Choose the most appropriate category from:
{categories}

Respond in JSON format only:
{{
  "category": "chosen_category",
  "confidence": 0.8,
  "reasoning": "brief explanation"
}}"""

    def classify(self, description: str, amount: Decimal | float) -> ClassifierVerdict:
        """Classify one transaction.

        Raises:
            ClassifierUnavailable: On API failure or an unusable response
        """
        try:
            message = self.client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                temperature=0.1,
                messages=[
                    {"role": "user", "content": self.build_prompt(description, amount)}
                ]
            )
            response_text = message.content[0].text
        except Exception as e:
            raise ClassifierUnavailable(f"Claude request failed: {e}") from e

        return self.parse_response(response_text)

    def parse_response(self, response_text: str) -> ClassifierVerdict:
        """Pull the JSON verdict out of a model reply.

        Raises:
            ClassifierUnavailable: If no valid category can be read
        """
        json_match = re.search(r'\{[\s\S]*\}', response_text or "")
        if not json_match:
            raise ClassifierUnavailable("No JSON object in classifier response")

        try:
            data = json.loads(json_match.group(0))
        except json.JSONDecodeError as e:
            raise ClassifierUnavailable(f"Malformed classifier response: {e}") from e

        if not isinstance(data, dict):
            raise ClassifierUnavailable("Classifier response is not an object")

        category = str(data.get("category", "")).strip().lower()
        if category not in CATEGORY_DESCRIPTIONS:
            raise ClassifierUnavailable(f"Unknown category from classifier: {category!r}")

        try:
            confidence = float(data.get("confidence", DEFAULT_CONFIDENCE))
        except (TypeError, ValueError):
            confidence = DEFAULT_CONFIDENCE

        return ClassifierVerdict(
            category=category,
            confidence=min(max(confidence, 0.0), 1.0),
            reasoning=data.get("reasoning"),
        )
