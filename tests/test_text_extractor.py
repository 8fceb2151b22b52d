import pytest

from conftest import STATEMENT_PAGE, build_pdf
from pdf.text_extractor import PdfPlumberTextExtractor
from services.errors import IncorrectPassword, NoExtractableText, PasswordRequired, UnreadableDocument


@pytest.fixture
def extractor():
    return PdfPlumberTextExtractor()


def test_extract_pages_rebuilds_columns(extractor, statement_pdf):
    pages = extractor.extract_pages(statement_pdf)
    assert len(pages) == 1
    assert ["2024-06-28", "STARBUCKS", "5.25"] in pages[0]
    assert ["2024-06-29", "AMAZON REFUND", "-20.00"] in pages[0]


def test_extract_text_flat(extractor, statement_pdf):
    text = extractor.extract_text(statement_pdf)
    assert "STARBUCKS" in text


def test_encrypted_without_password_requires_one(extractor, encrypted_statement_pdf):
    with pytest.raises(PasswordRequired):
        extractor.extract_pages(encrypted_statement_pdf)


def test_encrypted_with_wrong_password(extractor, encrypted_statement_pdf):
    with pytest.raises(IncorrectPassword):
        extractor.extract_pages(encrypted_statement_pdf, password="nope")


def test_encrypted_with_correct_password(extractor, encrypted_statement_pdf):
    text = extractor.extract_text(encrypted_statement_pdf, password="secret")
    assert text.strip()
    assert "STARBUCKS" in text


def test_blank_pdf_has_no_extractable_text(extractor):
    with pytest.raises(NoExtractableText):
        extractor.extract_pages(build_pdf([[]]))


def test_garbage_bytes_are_unreadable(extractor):
    with pytest.raises(UnreadableDocument):
        extractor.extract_text(b"this is not a pdf at all")


def test_page_limit(statement_pdf):
    two_pages = build_pdf([STATEMENT_PAGE, STATEMENT_PAGE])
    assert len(PdfPlumberTextExtractor(max_pages=1).extract_pages(two_pages)) == 1
