from datetime import date
from decimal import Decimal

from services.deduplicator import dedupe_expenses
from services.heuristic_parser import LocalStatementParser, detect_global_currency
from services.line_preparer import prepare_lines


TODAY = date(2024, 7, 15)


def test_repeated_purchases_on_separate_lines_survive():
    parser = LocalStatementParser(today=TODAY)
    out = dedupe_expenses(parser.parse_text("1. JUN 28 STARBUCKS $5.25\n2. JUN 28 STARBUCKS $5.25"))
    assert len(out) == 2
    assert [e.line_index for e in out] == [1, 2]
    for e in out:
        assert e.amount == Decimal("5.25")
        assert e.currency == "USD"
        assert e.occurred_on == date(2024, 6, 28)
        assert e.merchant == "STARBUCKS"


def test_global_currency_scoring():
    assert detect_global_currency("Statement for Toronto, Ontario\n$5.25") == "CAD"
    assert detect_global_currency("Total ₹1,200.00") == "INR"
    assert detect_global_currency("no currency cues at all") == "USD"


def test_date_formats():
    parser = LocalStatementParser(today=TODAY)
    assert parser.find_date("2024-03-05 COFFEE 3.10") == date(2024, 3, 5)
    assert parser.find_date("05 Mar 2023 COFFEE 3.10") == date(2023, 3, 5)
    assert parser.find_date("Mar 5, 2023 COFFEE 3.10") == date(2023, 3, 5)
    assert parser.find_date("25/03/2024 COFFEE 3.10") == date(2024, 3, 25)
    assert parser.find_date("03/25/2024 COFFEE 3.10") == date(2024, 3, 25)
    assert parser.find_date("MARKET 12 COFFEE 3.10") is None


def test_refund_and_parentheses_are_negative():
    parser = LocalStatementParser(today=TODAY)
    refund = parser.parse_line("JUN 29 AMAZON REFUND 20.00", 3)
    paren = parser.parse_line("JUN 29 RETURNED ITEM (7.50)", 4)
    minus = parser.parse_line("2024-06-30 ADJUSTMENT -1.99", 5)
    assert refund.amount == Decimal("-20.00")
    assert paren.amount == Decimal("-7.50")
    assert minus.amount == Decimal("-1.99")


def test_iso_date_hyphens_are_not_a_minus_sign():
    parser = LocalStatementParser(today=TODAY)
    out = parser.parse_line("2024-06-28 STARBUCKS 5.25", 1)
    assert out.amount == Decimal("5.25")


def test_trailing_running_balance_is_skipped():
    parser = LocalStatementParser(today=TODAY)
    out = parser.parse_line("JUN 28 | STARBUCKS | 5.25 | 1,204.00", 1)
    assert out.amount == Decimal("5.25")
    assert out.merchant == "STARBUCKS"


def test_lines_without_date_or_amount_are_skipped():
    parser = LocalStatementParser(today=TODAY)
    lines = prepare_lines("Opening balance\nJUN 28 STARBUCKS\nSTARBUCKS 5.25\nJUN 28 TIM HORTONS C$2.10")
    out = parser.parse(lines)
    assert len(out) == 1
    assert out[0].line_index == 4
    assert out[0].currency == "CAD"
    assert out[0].merchant == "TIM HORTONS"


def test_merchant_strips_boilerplate_and_codes():
    parser = LocalStatementParser(today=TODAY)
    out = parser.parse_line("JUN 28 VISA DEBIT PURCHASE 000123456789 METRO 44.10", 1)
    assert out.merchant == "METRO"


def test_amount_glued_to_currency_code():
    parser = LocalStatementParser(today=TODAY)
    cad = parser.parse_line("JUN 28 TIM HORTONS CAD12.00", 1)
    usd = parser.parse_line("JUN 29 STARBUCKS USD5.25", 2)
    assert (cad.amount, cad.currency, cad.merchant) == (Decimal("12.00"), "CAD", "TIM HORTONS")
    assert (usd.amount, usd.currency, usd.merchant) == (Decimal("5.25"), "USD", "STARBUCKS")
    assert parser.find_amount("ARCADE5.25 token") is None
