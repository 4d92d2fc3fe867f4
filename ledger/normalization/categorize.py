"""Rule-based spending categorization."""

from __future__ import annotations

import re
from decimal import Decimal
from typing import NamedTuple

from ledger.normalization.models import CategorizationResult, SpendingFlavor


class CategorizationRule(NamedTuple):
    matches: re.Pattern[str]
    category: str
    flavor: SpendingFlavor
    treat_upgrade_threshold: Decimal | None = None
    treat_upgrade_category: str | None = None
    luxury_threshold: Decimal | None = None
    luxury_category: str | None = None


# Evaluated in order; first matching rule wins.
RULES: list[CategorizationRule] = [
    CategorizationRule(
        re.compile(r"(salary|pay|pocket\s*money|allowance|stipend)", re.IGNORECASE),
        "Income",
        "necessity",
    ),
    CategorizationRule(
        re.compile(r"(rent|utilities|electricity|water|internet|gas)", re.IGNORECASE),
        "Essentials",
        "necessity",
    ),
    CategorizationRule(
        re.compile(
            r"(grocery|groceries|vegetable|vegetables|fruit|milk|bread|supermarket)",
            re.IGNORECASE,
        ),
        "Food & Groceries",
        "necessity",
    ),
    CategorizationRule(
        re.compile(
            r"(coffee|latte|tea|snack|breakfast|lunch|dinner|pizza|burger|sandwich|restaurant)",
            re.IGNORECASE,
        ),
        "Food & Dining",
        "treat",
        treat_upgrade_threshold=Decimal("300"),
        treat_upgrade_category="Celebration Food",
    ),
    CategorizationRule(
        re.compile(
            r"(party|celebration|concert|festival|vacation|travel|flight|hotel|resort)",
            re.IGNORECASE,
        ),
        "Experiences",
        "luxury",
    ),
    CategorizationRule(
        re.compile(r"(shopping|clothes|fashion|apparel|shoes|makeup|accessory)", re.IGNORECASE),
        "Shopping",
        "treat",
        luxury_threshold=Decimal("1500"),
        luxury_category="Premium Shopping",
    ),
    CategorizationRule(
        re.compile(r"(electronics|gadget|console|smartphone|laptop|camera)", re.IGNORECASE),
        "Electronics",
        "luxury",
    ),
    CategorizationRule(
        re.compile(r"(gift|present|donation|charity)", re.IGNORECASE),
        "Gifts & Giving",
        "treat",
    ),
]

HIGH_VALUE_THRESHOLD = Decimal("2000")
LOW_VALUE_THRESHOLD = Decimal("100")


def categorize_transaction(description: str, amount: Decimal | float | int) -> CategorizationResult:
    """
    Categorize a transaction from its description and amount.

    Args:
        description: Free-text description
        amount: Transaction amount

    Returns:
        CategorizationResult with flavor and inferred category
    """
    normalized = (description or "").strip().lower()
    value = Decimal(str(amount))

    for rule in RULES:
        if not rule.matches.search(normalized):
            continue

        if rule.treat_upgrade_threshold is not None and value >= rule.treat_upgrade_threshold:
            return CategorizationResult(
                flavor="luxury",
                inferred_category=rule.treat_upgrade_category or "Premium Treat",
            )

        if rule.luxury_threshold is not None and value >= rule.luxury_threshold:
            return CategorizationResult(
                flavor="luxury",
                inferred_category=rule.luxury_category or "Luxury Expense",
            )

        return CategorizationResult(flavor=rule.flavor, inferred_category=rule.category)

    if value >= HIGH_VALUE_THRESHOLD:
        return CategorizationResult(flavor="luxury", inferred_category="High-Value Expense")

    if value <= LOW_VALUE_THRESHOLD:
        return CategorizationResult(flavor="necessity", inferred_category="Everyday Expense")

    return CategorizationResult(flavor="treat", inferred_category="General Expense")
