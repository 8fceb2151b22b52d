from datetime import date, datetime
from decimal import Decimal
from io import BytesIO

import pandas as pd
import pytest

from services.errors import UnreadableDocument, UnsupportedFileType
from services.spreadsheet_parser import (
    SpreadsheetParser,
    cell_to_date,
    find_header_row,
    map_columns,
    match_header,
)


CSV = (
    "Account statement,,,\n"
    "Generated for card ending 1234,,,\n"
    "Transaction Date,Description,Debit,Credit\n"
    "2024-06-28,STARBUCKS,5.25,\n"
    "2024-06-29,AMAZON REFUND,,20.00\n"
    "2024-06-30,PAYMENT RECEIVED - THANK YOU,,500.00\n"
    "not a date,IGNORED,1.00,\n"
).encode("utf-8")


def test_header_matching_prefers_whole_words():
    assert match_header("Description") == "description"
    assert match_header("Transaction Date") == "date"
    assert match_header("Payment Method") == "payment_method"
    assert match_header("Withdrawals") == "debit"
    assert match_header("Balance") is None


def test_header_row_is_found_below_preamble():
    parser = SpreadsheetParser()
    rows = parser.load(CSV, "statement.csv")
    idx = find_header_row(rows)
    assert idx == 2
    assert map_columns(rows[idx]) == {"date": 0, "description": 1, "debit": 2, "credit": 3}


def test_debit_credit_columns_become_signed_amounts():
    parser = SpreadsheetParser()
    out = parser.parse_rows(parser.load(CSV, "statement.csv"))
    assert [(e.merchant, e.amount) for e in out] == [
        ("STARBUCKS", Decimal("5.25")),
        ("AMAZON REFUND", Decimal("-20.00")),
    ]
    assert all(e.currency == "USD" for e in out)


def test_amount_column_with_currency_symbols():
    csv = "Date,Merchant,Amount\n28/06/2024,TESCO,£12.40\n29/06/2024,RETURN,(3.00)\n".encode()
    parser = SpreadsheetParser()
    out = parser.parse_rows(parser.load(csv, "export.csv"))
    assert out[0].currency == "GBP"
    assert out[0].occurred_on == date(2024, 6, 28)
    assert out[1].amount == Decimal("-3.00")


def test_xlsx_with_real_dates():
    df = pd.DataFrame(
        {
            "Posted Date": [datetime(2024, 6, 28), datetime(2024, 6, 29)],
            "Payee": ["METRO", "SHELL"],
            "Amount": [44.1, 60.0],
            "Currency": ["cad", "CAD"],
        }
    )
    buf = BytesIO()
    df.to_excel(buf, index=False)
    parser = SpreadsheetParser()
    rows = parser.load(buf.getvalue(), "export.xlsx")
    out = parser.parse_rows(rows)
    assert [(e.occurred_on, e.merchant, e.amount, e.currency) for e in out] == [
        (date(2024, 6, 28), "METRO", Decimal("44.1"), "CAD"),
        (date(2024, 6, 29), "SHELL", Decimal("60.0"), "CAD"),
    ]
    assert "2024-06-28 | METRO | 44.1 | cad" in parser.table_text(rows)


def test_excel_serial_dates():
    assert cell_to_date(45471) == date(2024, 6, 28)


def test_unsupported_and_unreadable_files():
    parser = SpreadsheetParser()
    with pytest.raises(UnsupportedFileType):
        parser.load(b"x", "notes.txt")
    with pytest.raises(UnreadableDocument):
        parser.load(b"not a workbook", "broken.xlsx")


def test_csv_rows_keep_the_widest_table_width():
    data = (
        "Account statement\n"
        "Period: June\n"
        "Date,Description,Debit,Credit\n"
        "2024-06-28,STARBUCKS,5.25,\n"
    ).encode("utf-8")
    rows = SpreadsheetParser().load(data, "narrow-preamble.csv")
    assert {len(r) for r in rows} == {4}
    assert rows[0] == ["Account statement", None, None, None]
    assert rows[3] == ["2024-06-28", "STARBUCKS", "5.25", None]


def test_cp1252_csv_is_decoded():
    data = "Date,Description,Amount\n2024-06-28,CAFÉ NOIR,4.50\n".encode("cp1252")
    out = SpreadsheetParser().parse_rows(SpreadsheetParser().load(data, "export.csv"))
    assert [(e.merchant, e.amount) for e in out] == [("CAFÉ NOIR", Decimal("4.50"))]
