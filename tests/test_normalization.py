"""Tests for normalization, categorization and temporal resolution."""

from datetime import date, datetime
from decimal import Decimal

import pytest

from ledger.core.errors import InvalidPayload
from ledger.normalization.categorize import categorize_transaction
from ledger.normalization.models import CategorizationResult, NormalizeOptions, TransactionPayload
from ledger.normalization.normalizer import (
    detect_currency,
    detect_temporal_context,
    normalize_amount,
    normalize_direction,
    normalize_event_time,
    normalize_transaction,
)

NOW = datetime(2025, 10, 13, 18, 30, 0)


class TestAmountNormalization:
    """Test amount normalization."""

    def test_numeric_types(self):
        """Test numeric input types."""
        assert normalize_amount(75) == Decimal("75")
        assert normalize_amount(75.5) == Decimal("75.5")
        assert normalize_amount(Decimal("75.00")) == Decimal("75.00")

    def test_strings_with_symbols_and_commas(self):
        """Test currency glyphs, codes and thousand separators."""
        assert normalize_amount("₹ 300") == Decimal("300")
        assert normalize_amount("1,250.00") == Decimal("1250.00")
        assert normalize_amount("Rs. 499") == Decimal("499")
        assert normalize_amount("$12.50") == Decimal("12.50")

    def test_rejects_non_finite_and_garbage(self):
        """Test values that are not finite numbers."""
        assert normalize_amount(None) is None
        assert normalize_amount("") is None
        assert normalize_amount("lots") is None
        assert normalize_amount(float("nan")) is None
        assert normalize_amount(float("inf")) is None
        assert normalize_amount(True) is None


class TestDirectionNormalization:
    """Test direction values and aliases."""

    def test_canonical_values(self):
        assert normalize_direction("expense") == "expense"
        assert normalize_direction(" Income ") == "income"

    def test_sms_aliases(self):
        """Debit/credit vocabulary maps onto expense/income."""
        assert normalize_direction("debit") == "expense"
        assert normalize_direction("CREDIT") == "income"

    def test_unknown_direction(self):
        assert normalize_direction("transfer") is None
        assert normalize_direction(None) is None


class TestCurrencyDetection:
    """Test currency marker priority."""

    def test_rupee_glyph(self):
        heuristics = []
        assert detect_currency("paid ₹200 for cab", "USD", heuristics) == "INR"
        assert heuristics == ["currency: detected INR glyph or token"]

    def test_rs_token(self):
        assert detect_currency("rs 50 chai", "USD", []) == "INR"

    def test_inr_wins_over_usd(self):
        """INR markers are checked before USD markers."""
        assert detect_currency("$5 or inr 400", "EUR", []) == "INR"

    def test_usd_and_eur(self):
        assert detect_currency("spent $12 on books", "INR", []) == "USD"
        assert detect_currency("museum 20 eur", "INR", []) == "EUR"

    def test_fallback(self):
        heuristics = []
        assert detect_currency("lunch", "INR", heuristics) == "INR"
        assert heuristics == []


class TestTemporalResolution:
    """Test event date and time detection."""

    def test_iso_date(self):
        ctx = detect_temporal_context("paid rent on 2025-10-01", NOW)
        assert ctx.event_date == date(2025, 10, 1)
        assert ctx.phrase == "2025-10-01"

    def test_slash_date_two_digit_year(self):
        ctx = detect_temporal_context("dinner 5/10/25", NOW)
        assert ctx.event_date == date(2025, 10, 5)

    def test_short_date_uses_current_year(self):
        ctx = detect_temporal_context("movie on 3-9", NOW)
        assert ctx.event_date == date(2025, 9, 3)

    def test_iso_date_beats_relative_phrase(self):
        """The first matching pattern in priority order wins."""
        ctx = detect_temporal_context("yesterday I mean 2025-10-10", NOW)
        assert ctx.event_date == date(2025, 10, 10)

    def test_relative_phrases(self):
        assert detect_temporal_context("coffee yesterday", NOW).event_date == date(2025, 10, 12)
        assert detect_temporal_context("dinner tonight", NOW).event_date == date(2025, 10, 13)
        assert detect_temporal_context("shoes last week", NOW).event_date == date(2025, 10, 6)

    def test_invalid_date_falls_through(self):
        """An impossible ISO date does not block later patterns."""
        ctx = detect_temporal_context("2025-13-45 yesterday", NOW)
        assert ctx.event_date == date(2025, 10, 12)

    def test_default_is_today(self):
        ctx = detect_temporal_context("lunch", NOW)
        assert ctx.event_date == date(2025, 10, 13)
        assert ctx.event_time is None
        assert ctx.heuristic is None

    def test_clock_times(self):
        assert detect_temporal_context("cab at 7pm", NOW).event_time == "19:00:00"
        assert detect_temporal_context("cab at 7:45 am", NOW).event_time == "07:45:00"
        assert detect_temporal_context("cab at 12am", NOW).event_time == "00:00:00"
        assert detect_temporal_context("cab at 21:15", NOW).event_time == "21:15:00"

    def test_time_inside_iso_datetime(self):
        ctx = detect_temporal_context("cab 2025-10-11T18:40 to airport", NOW)
        assert ctx.event_date == date(2025, 10, 11)
        assert ctx.event_time == "18:40:00"

    def test_bare_number_is_not_a_time(self):
        assert detect_temporal_context("spent 20 on chai", NOW).event_time is None

    def test_normalize_event_time(self):
        assert normalize_event_time("9:05") == "09:05:00"
        assert normalize_event_time("23:59:59") == "23:59:59"
        assert normalize_event_time("7pm") == "19:00:00"
        assert normalize_event_time("25:00") is None
        assert normalize_event_time("soon") is None
        assert normalize_event_time(None) is None


class TestCategorization:
    """Test the rule-based categorizer."""

    def test_dining_is_a_treat(self):
        result = categorize_transaction("Lunch with team", Decimal("75"))
        assert result == CategorizationResult(flavor="treat", inferred_category="Food & Dining")

    def test_dining_upgrade(self):
        result = categorize_transaction("dinner", Decimal("300"))
        assert result.flavor == "luxury"
        assert result.inferred_category == "Celebration Food"

    def test_premium_shopping(self):
        assert categorize_transaction("new shoes", 1500).inferred_category == "Premium Shopping"
        assert categorize_transaction("new shoes", 1499).inferred_category == "Shopping"

    def test_rule_order(self):
        """Income is checked before dining, so 'pay' wins over 'lunch'."""
        assert categorize_transaction("pay for lunch", 50).inferred_category == "Income"

    def test_amount_fallbacks(self):
        assert categorize_transaction("misc", 2500).inferred_category == "High-Value Expense"
        assert categorize_transaction("misc", 100).inferred_category == "Everyday Expense"
        assert categorize_transaction("misc", 500).inferred_category == "General Expense"


class TestNormalizeTransaction:
    """Test the full normalization of a submission."""

    def test_basic_fields(self):
        tx = normalize_transaction(
            {"amount": "75", "direction": "expense", "description": "lunch"},
            options=NormalizeOptions(now=NOW, target_party=" a@upi "),
        )
        assert tx.amount == Decimal("75")
        assert tx.direction == "expense"
        assert tx.currency == "INR"
        assert tx.category == "Food & Dining"
        assert tx.flavor == "treat"
        assert tx.event_date == date(2025, 10, 13)
        assert tx.event_time is None
        assert tx.recorded_at == NOW
        assert tx.meta.source == "mill-chat"
        assert tx.meta.target_party == "a@upi"
        assert tx.structured_summary == "spent INR 75 for lunch on 2025-10-13 (treat)."

    def test_ids_are_never_content_derived(self):
        """Identical payloads normalize to records with different ids."""
        payload = TransactionPayload(amount=10, direction="expense", description="tea")
        first = normalize_transaction(payload, options=NormalizeOptions(now=NOW))
        second = normalize_transaction(payload, options=NormalizeOptions(now=NOW))
        assert first.id != second.id

    def test_record_is_immutable(self):
        tx = normalize_transaction({"amount": 1, "direction": "income"}, options=NormalizeOptions(now=NOW))
        with pytest.raises(Exception):
            tx.amount = Decimal("2")

    def test_tags(self):
        tx = normalize_transaction(
            {
                "amount": 1200,
                "direction": "expense",
                "description": "party snacks",
                "raw_text": "party with friends, also paid the electricity bill",
                "category_suggestion": "Food & Dining",
            },
            categorization=CategorizationResult(flavor="treat", inferred_category="Food & Dining"),
            options=NormalizeOptions(now=NOW, extra_tags=[" Weekend ", "weekend", "", "SOCIAL"]),
        )
        assert tx.tags == ["expense", "treat", "food-&-dining", "social", "household", "weekend"]

    def test_currency_hint_and_detection(self):
        hinted = normalize_transaction(
            {"amount": 5, "direction": "expense", "description": "coffee"},
            options=NormalizeOptions(now=NOW, default_currency="usd"),
        )
        assert hinted.currency == "USD"

        detected = normalize_transaction(
            {"amount": 5, "direction": "expense", "raw_text": "coffee ₹5"},
            options=NormalizeOptions(now=NOW, default_currency="usd"),
        )
        assert detected.currency == "INR"
        assert "currency: detected INR glyph or token" in detected.meta.heuristics

    def test_overrides_win_over_detection(self):
        tx = normalize_transaction(
            {"amount": 40, "direction": "expense", "raw_text": "chai yesterday at 5pm"},
            options=NormalizeOptions(
                now=NOW, event_date_override=date(2025, 1, 2), event_time_override="08:15"
            ),
        )
        assert tx.event_date == date(2025, 1, 2)
        assert tx.event_time == "08:15:00"
        assert tx.meta.parsed_temporal_phrase == "yesterday"

    @pytest.mark.parametrize(
        "raw_text, override",
        [("taxi 500 at 12am", None), ("taxi 500", "00:00")],
    )
    def test_midnight_is_an_unknown_time(self, raw_text, override):
        tx = normalize_transaction(
            {"amount": 500, "direction": "expense", "raw_text": raw_text},
            options=NormalizeOptions(now=NOW, event_time_override=override),
        )
        assert tx.event_time is None

    def test_empty_suggestion_falls_back_to_inferred_category(self):
        tx = normalize_transaction(
            {"amount": 30, "direction": "expense", "description": "groceries", "category_suggestion": "  "},
            options=NormalizeOptions(now=NOW),
        )
        assert tx.category == "Food & Groceries"

    @pytest.mark.parametrize("amount", ["abc", None, float("nan"), float("inf"), -5])
    def test_invalid_amount(self, amount):
        with pytest.raises(InvalidPayload) as exc_info:
            normalize_transaction({"amount": amount, "direction": "expense"}, options=NormalizeOptions(now=NOW))
        assert exc_info.value.field == "amount"

    def test_invalid_direction(self):
        with pytest.raises(InvalidPayload) as exc_info:
            normalize_transaction({"amount": 5, "direction": "transfer"}, options=NormalizeOptions(now=NOW))
        assert exc_info.value.field == "direction"

    def test_invalid_payload_is_a_value_error(self):
        with pytest.raises(ValueError):
            normalize_transaction({"description": "no amount"}, options=NormalizeOptions(now=NOW))

    def test_invalid_time_override(self):
        with pytest.raises(InvalidPayload):
            normalize_transaction(
                {"amount": 5, "direction": "expense"},
                options=NormalizeOptions(now=NOW, event_time_override="noonish"),
            )
