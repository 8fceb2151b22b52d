from __future__ import annotations

import asyncio
import json
from typing import List, Optional

from openai import APIError, APIStatusError, AsyncOpenAI
from pydantic import ValidationError

from schemas.expense import CandidateExpense, ExtractionEnvelope
from services import config
from services.chunking import chunk_text
from services.errors import ExternalCallFailed, SchemaViolation
from services.json_logger import get_json_logger
from services.prompts import SYSTEM_PROMPT, build_user_prompt, prompt_hash, response_format
from services.sign_normalizer import normalize_candidate


logger = get_json_logger("statement_ingest.extraction")


class ExtractionClient:
    """
    Sends numbered statement lines to an OpenAI-compatible chat completions
    endpoint and turns the structured reply into normalized candidates.

    Calls are never retried. Each call is bounded by its own timeout and a
    failed call raises `ExternalCallFailed`; `extract_page` is where those
    failures are logged and skipped.
    """

    def __init__(
        self,
        client: Optional[AsyncOpenAI] = None,
        model: str = "sonar",
        page_char_limit: int = config.PAGE_CHAR_LIMIT,
        chunk_chars: int = config.CHUNK_CHARS,
        page_timeout: float = config.PAGE_CALL_TIMEOUT_S,
        chunk_timeout: float = config.CHUNK_CALL_TIMEOUT_S,
        default_currency: str = "USD",
        debug: bool = False,
    ) -> None:
        self._client = client
        self.model = model
        self.page_char_limit = page_char_limit
        self.chunk_chars = chunk_chars
        self.page_timeout = page_timeout
        self.chunk_timeout = chunk_timeout
        self.default_currency = default_currency
        self.debug = debug

    @classmethod
    def from_settings(cls, settings=None) -> "ExtractionClient":  # type: ignore[no-untyped-def]
        if settings is None:
            from settings.config import settings as app_settings
            settings = app_settings
        client = None
        if settings.PERPLEXITY_API_KEY:
            client = AsyncOpenAI(
                api_key=settings.PERPLEXITY_API_KEY,
                base_url=settings.PERPLEXITY_BASE_URL,
                max_retries=0,
            )
        return cls(client=client, model=settings.PERPLEXITY_MODEL, debug=settings.DEBUG_AI_PARSE)

    @property
    def available(self) -> bool:
        return self._client is not None

    async def extract(
        self,
        numbered_text: str,
        timeout: Optional[float] = None,
        source_chunk: int = 0,
        source: str = "pdf",
    ) -> List[CandidateExpense]:
        """One provider call over a block of numbered lines."""
        if self._client is None:
            raise ExternalCallFailed("Missing PERPLEXITY_API_KEY")
        timeout = timeout if timeout is not None else self.page_timeout
        meta = {"prompt_hash": prompt_hash(numbered_text), "chars": len(numbered_text), "source_chunk": source_chunk}
        if self.debug:
            logger.info("calling extraction model", extra={"extra": {**meta, "model": self.model}})

        try:
            resp = await asyncio.wait_for(
                self._client.chat.completions.create(
                    model=self.model,
                    messages=[
                        {"role": "system", "content": SYSTEM_PROMPT},
                        {"role": "user", "content": build_user_prompt(numbered_text, source)},
                    ],
                    temperature=0,
                    response_format=response_format(),
                ),
                timeout=timeout,
            )
        except asyncio.TimeoutError as exc:
            raise ExternalCallFailed(f"Extraction call timed out after {timeout:g}s") from exc
        except APIStatusError as exc:
            raise ExternalCallFailed(f"Extraction API error: {exc.status_code}") from exc
        except APIError as exc:
            raise ExternalCallFailed(f"Extraction API error: {exc.__class__.__name__}") from exc

        content = resp.choices[0].message.content if resp.choices else None
        try:
            data = json.loads(content or "")
        except (TypeError, ValueError) as exc:
            raise SchemaViolation("Model returned non-JSON output") from exc
        try:
            envelope = ExtractionEnvelope.model_validate(data)
        except ValidationError as exc:
            raise SchemaViolation(f"Model output failed validation ({exc.error_count()} errors)") from exc

        expenses: List[CandidateExpense] = []
        for raw in envelope.expenses:
            candidate = normalize_candidate(raw, source_chunk=source_chunk, default_currency=self.default_currency)
            if candidate is None:
                logger.warning(
                    "dropping item with unparseable date",
                    extra={"extra": {**meta, "line_index": raw.line_index}},
                )
                continue
            expenses.append(candidate)
        if self.debug:
            logger.info("extraction model replied", extra={"extra": {**meta, "expenses": len(expenses)}})
        return expenses

    async def extract_page(self, page_corpus: str, page: int = 1, source: str = "pdf") -> List[CandidateExpense]:
        """
        Whole-page call when the page fits, otherwise (or when that call fails)
        sequential chunk calls. Failed calls are logged and skipped.
        """
        if not page_corpus.strip():
            return []
        if len(page_corpus) <= self.page_char_limit:
            try:
                return await self.extract(page_corpus, self.page_timeout, source_chunk=0, source=source)
            except ExternalCallFailed as exc:
                logger.warning(
                    "page call failed; falling back to chunks",
                    extra={"extra": {"page": page, "error": exc.user_message, "chars": len(page_corpus)}},
                )

        results: List[CandidateExpense] = []
        chunks = chunk_text(page_corpus, self.chunk_chars)
        for i, chunk in enumerate(chunks, start=1):
            try:
                results.extend(await self.extract(chunk, self.chunk_timeout, source_chunk=i, source=source))
            except ExternalCallFailed as exc:
                logger.warning(
                    "chunk call failed",
                    extra={"extra": {"page": page, "chunk": i, "chunks": len(chunks), "error": exc.user_message}},
                )
        return results
