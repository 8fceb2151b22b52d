from __future__ import annotations

from functools import lru_cache
from typing import Awaitable, Optional

from fastapi import APIRouter, Depends, File, Form, Header, Query, UploadFile, status
from fastapi.responses import JSONResponse

from schemas.expense import ParseStatementFailure, ParseStatementSuccess
from services.errors import StatementIngestError
from services.json_logger import get_json_logger
from services.statement_service import StatementIngestionService


logger = get_json_logger("statement_ingest.api")

ai_router = APIRouter(prefix="/ai", tags=["ai"])
import_router = APIRouter(prefix="/import", tags=["import"])


@lru_cache
def get_statement_service() -> StatementIngestionService:
    return StatementIngestionService()


def _first_upload(*uploads: Optional[UploadFile]) -> Optional[UploadFile]:
    for upload in uploads:
        if upload is not None and (upload.filename or "").strip():
            return upload
    return None


def _first_value(*values: Optional[str]) -> Optional[str]:
    for value in values:
        if value is not None and value.strip():
            return value.strip()
    return None


async def _respond(call: Awaitable[ParseStatementSuccess]) -> JSONResponse:
    try:
        result = await call
    except StatementIngestError as exc:
        logger.warning(
            "statement request failed",
            extra={"extra": {"error_type": type(exc).__name__, "status": exc.status_code}},
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=ParseStatementFailure(error=exc.user_message).model_dump(),
        )
    except Exception as exc:
        logger.exception("statement request crashed")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=ParseStatementFailure(error=str(exc) or "Internal Error").model_dump(),
        )
    return JSONResponse(content=result.model_dump(exclude_none=True))


@ai_router.post("/parse-statement")
async def parse_statement(
    file: Optional[UploadFile] = File(None),
    pdf: Optional[UploadFile] = File(None),
    statement: Optional[UploadFile] = File(None),
    text: Optional[str] = Form(None),
    password_form: Optional[str] = Form(None, alias="password"),
    password_query: Optional[str] = Query(None, alias="password"),
    password_header: Optional[str] = Header(None, alias="X-PDF-Password"),
    mask: Optional[str] = Query(None, description="0 disables PII masking"),
    preview: Optional[str] = Query(None, description="1 returns only a summary of the prepared text"),
    redact: Optional[str] = Query(None, description="1 uses flat text extraction"),
    local: Optional[str] = Query(None, description="1 parses with the local heuristics only"),
    service: StatementIngestionService = Depends(get_statement_service),
) -> JSONResponse:
    upload = _first_upload(file, pdf, statement)
    content = await upload.read() if upload is not None else None
    password = _first_value(password_query, password_form, password_header)
    logger.info(
        "parse statement request",
        extra={
            "extra": {
                "file_name": upload.filename if upload else None,
                "size": len(content) if content else 0,
                "has_text": bool(text and text.strip()),
                "has_password": password is not None,
            }
        },
    )
    return await _respond(
        service.parse_statement(
            content=content,
            filename=upload.filename if upload else None,
            content_type=upload.content_type if upload else None,
            text=text,
            password=password,
            mask=mask != "0",
            preview=preview == "1",
            redact=redact == "1",
            local=local == "1",
        )
    )


@import_router.post("/parse-spreadsheet")
async def parse_spreadsheet(
    file: Optional[UploadFile] = File(None),
    excel: Optional[UploadFile] = File(None),
    spreadsheet: Optional[UploadFile] = File(None),
    mask: Optional[str] = Query(None, description="0 disables PII masking"),
    local: Optional[str] = Query(None, description="1 skips the extraction model"),
    service: StatementIngestionService = Depends(get_statement_service),
) -> JSONResponse:
    upload = _first_upload(file, excel, spreadsheet)
    content = await upload.read() if upload is not None else None
    return await _respond(
        service.parse_spreadsheet(
            content=content,
            filename=upload.filename if upload else None,
            mask=mask != "0",
            local=local == "1",
        )
    )
