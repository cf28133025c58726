"""
Input validation utilities
"""
from decimal import Decimal
from typing import Optional


def validate_budget_amount(amount: Decimal) -> Decimal:
    """Validate budget amount is not negative"""
    if amount < 0:
        raise ValueError("Budget amount must not be negative")
    return amount


def validate_optional_amount(amount: Optional[Decimal]) -> Optional[Decimal]:
    if amount is None:
        return None
    return validate_budget_amount(amount)


def validate_payment_amount(amount: Decimal) -> Decimal:
    """Validate payment amount is positive"""
    if amount <= 0:
        raise ValueError("Payment amount must be positive")
    return amount


def validate_confidence(score: float) -> float:
    """Extraction confidence is an opaque score in [0, 1]"""
    if score < 0 or score > 1:
        raise ValueError("Confidence must be between 0 and 1")
    return score
