from __future__ import annotations

from typing import Optional


class StatementIngestError(Exception):
    """
    Base for every failure the ingestion pipeline reports to its caller.

    `user_message` is the one human-readable string placed in the
    `{success: false, error}` envelope; `status_code` is the HTTP status the
    route layer answers with.
    """

    status_code: int = 400
    default_message: str = "Could not process the uploaded statement."

    def __init__(self, message: Optional[str] = None) -> None:
        self.user_message = message or self.default_message
        super().__init__(self.user_message)


# --- document-level (abort the request) ---

class PasswordRequired(StatementIngestError):
    default_message = "This PDF is password-protected. Please provide the correct password and try again."


class IncorrectPassword(StatementIngestError):
    default_message = "Incorrect password for this PDF."


class EngineUnavailable(StatementIngestError):
    default_message = (
        "We could not read this PDF on the current server environment. "
        "Please try uploading a CSV or XLSX export instead."
    )


class NoExtractableText(StatementIngestError):
    default_message = (
        "Could not extract text from PDF. Scanned or image-only statements are not supported; "
        "please upload a text-based PDF or a CSV/XLSX export."
    )


class UnreadableDocument(StatementIngestError):
    default_message = "Could not extract text from PDF. The file may be corrupted or use an unsupported format."


class InputRejected(StatementIngestError):
    default_message = 'No file uploaded and no text provided. Upload a PDF using field "file" or provide a "text" field.'


class UnsupportedFileType(StatementIngestError):
    status_code = 415
    default_message = "Unsupported file type. Upload a PDF, CSV or XLSX statement."


class FileTooLarge(StatementIngestError):
    status_code = 413
    default_message = "The uploaded file is too large."


# --- call-level (logged and skipped by the pipeline) ---

class ExternalCallFailed(StatementIngestError):
    status_code = 502
    default_message = "The extraction service did not return a usable response."


class SchemaViolation(ExternalCallFailed):
    default_message = "The extraction service returned output that does not match the expected schema."
