from __future__ import annotations

import asyncio
from typing import List, Optional, Sequence

from pdf.text_extractor import PdfTextExtractor, get_pdf_text_extractor
from schemas.expense import CandidateExpense, ParseStatementSuccess, PreviewSummary
from services import config
from services.chunking import chunk_text
from services.deduplicator import dedupe_expenses
from services.errors import (
    ExternalCallFailed,
    FileTooLarge,
    InputRejected,
    NoExtractableText,
    UnsupportedFileType,
)
from services.extraction_client import ExtractionClient
from services.heuristic_parser import LocalStatementParser
from services.json_logger import get_json_logger
from services.line_preparer import (
    NumberedLine,
    PreparedPage,
    grid_to_text,
    prepare_lines,
    prepare_pages,
    render_corpus,
)
from services.pii_sanitizer import PiiSanitizer
from services.prompts import prompt_hash
from services.spreadsheet_parser import SpreadsheetParser, drop_payment_receipts


logger = get_json_logger("statement_ingest.service")

PDF_CONTENT_TYPES = ("application/pdf", "application/x-pdf")


def is_pdf_upload(content: bytes, filename: Optional[str], content_type: Optional[str]) -> bool:
    name = (filename or "").lower()
    ctype = (content_type or "").lower()
    return name.endswith(".pdf") or ctype in PDF_CONTENT_TYPES or content[:5] == b"%PDF-"


class StatementIngestionService:
    """
    Orchestrates one statement upload end to end:
    extract -> number lines -> mask -> extract per page -> normalize -> dedupe.

    Holds no per-request state; one instance can serve concurrent requests.
    """

    def __init__(
        self,
        extractor: Optional[PdfTextExtractor] = None,
        client: Optional[ExtractionClient] = None,
        sanitizer: Optional[PiiSanitizer] = None,
        local_parser: Optional[LocalStatementParser] = None,
        spreadsheet_parser: Optional[SpreadsheetParser] = None,
        settings=None,  # type: ignore[no-untyped-def]
        max_upload_mb: int = config.MAX_UPLOAD_MB,
        dedupe_across_pages: bool = config.DEDUPE_ACROSS_PAGES,
    ) -> None:
        if settings is None:
            from settings.config import settings as app_settings
            settings = app_settings
        self.settings = settings
        self.extractor = extractor or get_pdf_text_extractor()
        self.client = client or ExtractionClient.from_settings(settings)
        self.sanitizer = sanitizer or PiiSanitizer.from_settings(settings)
        self.local_parser = local_parser or LocalStatementParser()
        self.spreadsheet_parser = spreadsheet_parser or SpreadsheetParser()
        self.max_upload_bytes = max_upload_mb * 1024 * 1024
        self.dedupe_across_pages = dedupe_across_pages

    @property
    def external_enabled(self) -> bool:
        return self.client.available and not self.settings.AI_DISABLE_EXTERNAL

    # -------------------------- statements --------------------------
    async def parse_statement(
        self,
        content: Optional[bytes] = None,
        filename: Optional[str] = None,
        content_type: Optional[str] = None,
        text: Optional[str] = None,
        password: Optional[str] = None,
        mask: bool = True,
        preview: bool = False,
        redact: bool = False,
        local: bool = False,
    ) -> ParseStatementSuccess:
        page_texts = await self._page_texts(content, filename, content_type, text, password, redact)
        pages = prepare_pages(page_texts)
        line_count = sum(len(p.lines) for p in pages)
        if line_count == 0:
            raise NoExtractableText()

        outbound = [self._mask_page(p) for p in pages] if mask else pages
        if preview:
            return self._preview(outbound, line_count)

        if local or not self.external_enabled:
            expenses = self._parse_locally(pages)
            path = "local"
        else:
            expenses = await self._parse_with_model(outbound)
            path = "model"

        logger.info(
            "statement parsed",
            extra={
                "extra": {
                    "path": path,
                    "pages": len(pages),
                    "lines": line_count,
                    "expenses": len(expenses),
                    "masked": mask,
                }
            },
        )
        return ParseStatementSuccess(expenses=[e.to_public() for e in expenses])

    async def _page_texts(
        self,
        content: Optional[bytes],
        filename: Optional[str],
        content_type: Optional[str],
        text: Optional[str],
        password: Optional[str],
        redact: bool,
    ) -> List[str]:
        if text is not None and text.strip():
            return [text.strip()]
        if not content:
            raise InputRejected()
        self._check_size(content)
        if not is_pdf_upload(content, filename, content_type):
            raise UnsupportedFileType(
                "Only PDF statements are accepted here. Use /import/parse-spreadsheet for CSV or XLSX files."
            )
        if redact or self.settings.AI_DEFAULT_REDACT:
            flat = await asyncio.to_thread(self.extractor.extract_text, content, password)
            return [flat]
        grids = await asyncio.to_thread(self.extractor.extract_pages, content, password)
        return [grid_to_text(grid) for grid in grids]

    def _check_size(self, content: bytes) -> None:
        if len(content) > self.max_upload_bytes:
            raise FileTooLarge(f"The uploaded file is too large (limit {self.max_upload_bytes // (1024 * 1024)} MB).")

    def _mask_page(self, page: PreparedPage) -> PreparedPage:
        return PreparedPage(page=page.page, lines=self.sanitizer.sanitize_lines(page.lines))

    def _preview(self, pages: Sequence[PreparedPage], line_count: int) -> ParseStatementSuccess:
        corpus = "\n".join(p.corpus for p in pages if p.lines)
        sample = config.PREVIEW_SAMPLE_CHARS
        summary = PreviewSummary(
            prompt_hash=prompt_hash(corpus),
            length=len(corpus),
            pages=len(pages),
            lines=line_count,
            head=corpus[:sample],
            tail=corpus[-sample:] if len(corpus) > 2 * sample else None,
        )
        return ParseStatementSuccess(expenses=[], usage={"preview": summary.model_dump(exclude_none=True)})

    def _parse_locally(self, pages: Sequence[PreparedPage]) -> List[CandidateExpense]:
        lines: List[NumberedLine] = [line for p in pages for line in p.lines]
        return dedupe_expenses(self.local_parser.parse(lines))

    async def _parse_with_model(self, pages: Sequence[PreparedPage]) -> List[CandidateExpense]:
        collected: List[CandidateExpense] = []
        for p in pages:
            if not p.lines:
                continue
            found = await self.client.extract_page(p.corpus, page=p.page)
            collected.extend(found if self.dedupe_across_pages else dedupe_expenses(found))
        return dedupe_expenses(collected) if self.dedupe_across_pages else collected

    # -------------------------- spreadsheets --------------------------
    async def parse_spreadsheet(
        self,
        content: Optional[bytes],
        filename: Optional[str],
        mask: bool = True,
        local: bool = False,
    ) -> ParseStatementSuccess:
        if not content:
            raise InputRejected('No file uploaded. Use field name "file".')
        self._check_size(content)
        rows = await asyncio.to_thread(self.spreadsheet_parser.load, content, filename or "")
        local_rows = self.spreadsheet_parser.parse_rows(rows)
        if local or not self.external_enabled:
            return ParseStatementSuccess(expenses=[e.to_public() for e in local_rows])

        lines = prepare_lines(self.spreadsheet_parser.table_text(rows))
        if mask:
            lines = self.sanitizer.sanitize_lines(lines)
        corpus = render_corpus(lines)
        try:
            extracted = await self._extract_sheet(corpus)
        except ExternalCallFailed as exc:
            logger.warning(
                "spreadsheet extraction failed; returning locally parsed rows",
                extra={"extra": {"error": exc.user_message, "rows": len(local_rows)}},
            )
            return ParseStatementSuccess(expenses=[e.to_public() for e in local_rows])

        extracted = drop_payment_receipts(dedupe_expenses(extracted))
        chosen = extracted or local_rows
        logger.info(
            "spreadsheet parsed",
            extra={"extra": {"model_rows": len(extracted), "local_rows": len(local_rows), "returned": len(chosen)}},
        )
        return ParseStatementSuccess(expenses=[e.to_public() for e in chosen])

    async def _extract_sheet(self, corpus: str) -> List[CandidateExpense]:
        if len(corpus) <= self.client.page_char_limit:
            return await self.client.extract(corpus, self.client.page_timeout, source="spreadsheet")
        results: List[CandidateExpense] = []
        for i, chunk in enumerate(chunk_text(corpus, config.SPREADSHEET_CHUNK_CHARS), start=1):
            results.extend(
                await self.client.extract(chunk, self.client.chunk_timeout, source_chunk=i, source="spreadsheet")
            )
        return results
