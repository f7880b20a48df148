"""
Quote model tests: derived totals and expiry.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

from app.models.quote import Quote, QuoteItem, QuoteStatus, to_money


NOW = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


def test_item_total_is_quantity_times_price():
    item = QuoteItem(name="Mulch", quantity=Decimal("2.5"), unit_price=Decimal("19.99"))

    assert item.total == Decimal("49.98")


def test_totals_recalculated_from_items():
    quote = Quote(
        quote_number="Q-2026-00001",
        tax_rate=Decimal("8.25"),
        items=[
            QuoteItem(name="Lawn mowing", quantity=Decimal("2"), unit_price=Decimal("50.00")),
            QuoteItem(name="Edging", quantity=Decimal("1"), unit_price=Decimal("15.50")),
        ],
    )

    assert quote.subtotal == Decimal("115.50")
    assert quote.tax == Decimal("9.53")
    assert quote.total == Decimal("125.03")
    assert [item.position for item in quote.items] == [0, 1]


def test_totals_follow_item_changes():
    quote = Quote(
        quote_number="Q-2026-00002",
        items=[QuoteItem(name="Gutter cleaning", unit_price=Decimal("80.00"))],
    )
    assert quote.total == Decimal("80.00")

    quote.items[0].quantity = Decimal("3")
    quote.items.append(QuoteItem(name="Disposal fee", unit_price=Decimal("10.00")))
    quote.calculate_totals()

    assert quote.subtotal == Decimal("250.00")
    assert quote.total == Decimal("250.00")


def test_empty_quote_totals_are_zero():
    quote = Quote(quote_number="Q-2026-00003")

    assert quote.status == QuoteStatus.DRAFT
    assert quote.subtotal == Decimal("0.00")
    assert quote.total == Decimal("0.00")


def test_to_money_rounds_half_up():
    assert to_money(Decimal("2.345")) == Decimal("2.35")
    assert to_money(Decimal("2.344")) == Decimal("2.34")


def test_sent_quote_expires_at_deadline():
    quote = Quote(
        quote_number="Q-2026-00004",
        status=QuoteStatus.SENT,
        sent_at=NOW - timedelta(days=30),
        expires_at=NOW,
    )

    assert quote.effective_status(NOW - timedelta(seconds=1)) == QuoteStatus.SENT
    assert quote.effective_status(NOW) == QuoteStatus.EXPIRED
    assert quote.is_expired(NOW + timedelta(days=1))
    # Stored status is never rewritten
    assert quote.status == QuoteStatus.SENT


def test_naive_expiry_treated_as_utc():
    quote = Quote(
        quote_number="Q-2026-00005",
        status=QuoteStatus.SENT,
        expires_at=(NOW - timedelta(hours=1)).replace(tzinfo=None),
    )

    assert quote.effective_status(NOW) == QuoteStatus.EXPIRED


def test_only_sent_quotes_expire():
    quote = Quote(
        quote_number="Q-2026-00006",
        status=QuoteStatus.APPROVED,
        expires_at=NOW - timedelta(days=5),
    )

    assert quote.effective_status(NOW) == QuoteStatus.APPROVED
