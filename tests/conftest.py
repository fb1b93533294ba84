"""
Pytest configuration and fixtures for statement rewards tests.
"""

import json
import os
import sys
from datetime import date
from decimal import Decimal
from pathlib import Path

import pytest
import yaml

# Project root directory
PROJECT_ROOT = Path(__file__).parent.parent

sys.path.insert(0, str(PROJECT_ROOT / "python"))

from rewards import CardProfile, Milestone  # noqa: E402
from statement_processor import Transaction  # noqa: E402


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def config_dir() -> Path:
    """Return the config directory path."""
    return PROJECT_ROOT / "config"


@pytest.fixture
def merchant_mappings(config_dir: Path) -> dict:
    """Load the merchant mappings configuration."""
    with open(config_dir / "merchant_mappings.json") as f:
        return json.load(f)


@pytest.fixture
def reward_rules(config_dir: Path) -> dict:
    """Load the reward rules configuration."""
    with open(config_dir / "reward_rules.yaml") as f:
        return yaml.safe_load(f)


def make_txn(
    day: date,
    description: str,
    amount: str | int | float,
    category: str = "others",
    merchant: str = ""
) -> Transaction:
    return Transaction(
        date=day,
        description=description,
        amount=Decimal(str(amount)),
        merchant=merchant,
        category=category,
    )


@pytest.fixture
def sample_transaction() -> Transaction:
    """Return a sample food transaction (a Sunday)."""
    return make_txn(date(2025, 8, 10), "Zomato Order", 540, "food", "Zomato Order")


@pytest.fixture
def sample_transactions() -> list[Transaction]:
    """Return a month and a half of categorized spend."""
    return [
        make_txn(date(2025, 7, 3), "HPCL PETROL PUMP", 3000, "fuel", "HPCL PETROL PUMP"),
        make_txn(date(2025, 7, 5), "BIGBASKET ORDER", 4500, "grocery", "BIGBASKET ORDER"),
        make_txn(date(2025, 7, 12), "AMAZON ONLINE", 8000, "shopping", "AMAZON ONLINE"),
        make_txn(date(2025, 7, 20), "BESCOM BILL PAYMENT", 2200, "utilities", "BESCOM BILL PAYMENT"),
        make_txn(date(2025, 8, 2), "SWIGGY ORDER", 650, "food", "SWIGGY ORDER"),
        make_txn(date(2025, 8, 9), "MAKEMYTRIP FLIGHT", 12000, "travel", "MAKEMYTRIP FLIGHT"),
    ]


@pytest.fixture
def sample_csv_content() -> bytes:
    """Return sample CSV content for testing parsers."""
    return (
        b"Transaction Date,Description,Amount\n"
        b"05/08/2025,POS ZOMATO ORDER 1234,\"1,250.00\"\n"
        b"02/08/2025,HPCL PETROL PUMP,Rs. 2000 Dr\n"
        b"not a date,BROKEN ROW,100\n"
        b"09/08/2025,NETFLIX SUBSCRIPTION,649\n"
    )


@pytest.fixture
def basic_card() -> CardProfile:
    """A no-fee card earning 1% everywhere and 5% on food."""
    return CardProfile(
        name="Basic Rewards",
        bank="Test Bank",
        rates={"food": Decimal("5")},
        default_rate=Decimal("1"),
    )


@pytest.fixture
def milestone_card() -> CardProfile:
    """A card with a 10k monthly milestone."""
    return CardProfile(
        name="Milestone Card",
        rates={"others": Decimal("1")},
        milestones=[Milestone(threshold=Decimal("10000"), bonus_rate=Decimal("0.1"))],
    )


# Environment setup for tests
@pytest.fixture(autouse=True)
def setup_test_env(monkeypatch):
    """Set up test environment variables."""
    monkeypatch.setenv("ENVIRONMENT", "development")
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
    monkeypatch.delenv("PATTERN_STORE_PATH", raising=False)
    yield
