from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import contextmanager
from io import BytesIO
from typing import Iterator, List, Optional

from pypdf import PasswordType, PdfReader
from pypdf.errors import DependencyError, PdfReadError

from pdf.layout import PositionedTextFragment, TableRow, fragments_to_rows
from services import config
from services.errors import (
    EngineUnavailable,
    IncorrectPassword,
    NoExtractableText,
    PasswordRequired,
    UnreadableDocument,
)
from services.json_logger import get_json_logger

try:
    import pdfplumber  # type: ignore
    _HAVE_PDFPLUMBER = True
except ImportError:
    _HAVE_PDFPLUMBER = False


logger = get_json_logger("statement_ingest.pdf")


class PdfTextExtractor(ABC):
    """Capability interface for pulling text out of a statement PDF."""

    @abstractmethod
    def extract_text(self, content: bytes, password: Optional[str] = None) -> str:
        """Flat text, one page after another, without column awareness."""
        raise NotImplementedError

    @abstractmethod
    def extract_pages(self, content: bytes, password: Optional[str] = None) -> List[List[TableRow]]:
        """Row/column grid per page, reconstructed from fragment positions."""
        raise NotImplementedError


class PdfPlumberTextExtractor(PdfTextExtractor):
    """
    pdfplumber-backed extractor. Encryption is checked up front with pypdf so
    that a missing password and a wrong password surface as different errors.
    """

    def __init__(
        self,
        max_pages: int = config.MAX_PAGES,
        y_tolerance: float = config.ROW_Y_TOLERANCE,
        column_gap: float = config.COLUMN_GAP,
    ) -> None:
        self.max_pages = max_pages
        self.y_tolerance = y_tolerance
        self.column_gap = column_gap

    # ---------------------------------------------
    # Public API
    # ---------------------------------------------
    def extract_text(self, content: bytes, password: Optional[str] = None) -> str:
        page_texts: List[str] = []
        with self._open(content, password) as pdf:
            for page in self._pages(pdf):
                page_texts.append(page.extract_text() or "")
        text = "\n".join(t for t in page_texts if t)
        if not text.strip():
            raise NoExtractableText()
        logger.info("pdf_text_extracted", extra={"extra": {"pages": len(page_texts), "chars": len(text)}})
        return text

    def extract_pages(self, content: bytes, password: Optional[str] = None) -> List[List[TableRow]]:
        pages: List[List[TableRow]] = []
        for fragments in self.extract_fragments(content, password):
            pages.append(fragments_to_rows(fragments, y_tolerance=self.y_tolerance, column_gap=self.column_gap))
        if not any(cell.strip() for grid in pages for row in grid for cell in row):
            raise NoExtractableText()
        logger.info(
            "pdf_grid_extracted",
            extra={"extra": {"pages": len(pages), "rows": sum(len(g) for g in pages)}},
        )
        return pages

    def extract_fragments(self, content: bytes, password: Optional[str] = None) -> List[List[PositionedTextFragment]]:
        per_page: List[List[PositionedTextFragment]] = []
        with self._open(content, password) as pdf:
            for page_number, page in enumerate(self._pages(pdf), start=1):
                words = page.extract_words(
                    keep_blank_chars=True,
                    use_text_flow=False,
                    x_tolerance=config.WORD_X_TOLERANCE,
                    y_tolerance=config.WORD_Y_TOLERANCE,
                ) or []
                per_page.append([
                    PositionedTextFragment(
                        text=str(w.get("text", "")),
                        x=float(w.get("x0", 0.0)),
                        y=float(w.get("top", 0.0)),
                        width=float(w.get("x1", 0.0)) - float(w.get("x0", 0.0)),
                        height=float(w.get("bottom", 0.0)) - float(w.get("top", 0.0)),
                        page=page_number,
                    )
                    for w in words
                    if w.get("text")
                ])
        return per_page

    # -------------------------- helpers --------------------------
    def _pages(self, pdf):  # type: ignore[no-untyped-def]
        pages = pdf.pages
        if len(pages) > self.max_pages:
            logger.warning("pdf_pages_exceed_limit", extra={"extra": {"pages": len(pages), "max_pages": self.max_pages}})
            return pages[: self.max_pages]
        return pages

    def _check_password(self, content: bytes, password: Optional[str]) -> None:
        try:
            reader = PdfReader(BytesIO(content))
        except PdfReadError as exc:
            raise UnreadableDocument() from exc

        if not reader.is_encrypted:
            return
        try:
            # Owner-password-only documents open with an empty user password
            if reader.decrypt("") != PasswordType.NOT_DECRYPTED:
                return
            if not password:
                raise PasswordRequired()
            if reader.decrypt(password) == PasswordType.NOT_DECRYPTED:
                raise IncorrectPassword()
        except DependencyError as exc:
            raise EngineUnavailable() from exc

    @contextmanager
    def _open(self, content: bytes, password: Optional[str]) -> Iterator["pdfplumber.PDF"]:
        if not _HAVE_PDFPLUMBER:
            raise EngineUnavailable()
        self._check_password(content, password)
        try:
            pdf = pdfplumber.open(BytesIO(content), password=password or "")
        except Exception as exc:
            logger.warning("pdf_open_failed", extra={"extra": {"error": type(exc).__name__}})
            raise UnreadableDocument() from exc
        try:
            yield pdf
        finally:
            pdf.close()


def get_pdf_text_extractor() -> PdfTextExtractor:
    return PdfPlumberTextExtractor()
