import os
import sys

# Keep the suite offline regardless of the developer's environment
os.environ.setdefault("AI_DISABLE_EXTERNAL", "1")


def pytest_sessionstart(session):
    # Ensure project root is on sys.path so `services` and `pdf` resolve
    project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
    if project_root not in sys.path:
        sys.path.insert(0, project_root)


# --- Test utilities: fake async chat completions client ---
import json
from io import BytesIO
from types import SimpleNamespace

import pytest


class FakeCompletions:
    """
    Replays canned replies in order. A reply may be a dict (sent as JSON), a
    raw string, an exception instance (raised) or a callable taking the
    request kwargs and returning one of those.
    """

    def __init__(self, replies) -> None:
        self.replies = list(replies)
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        reply = self.replies.pop(0) if self.replies else {"expenses": []}
        if callable(reply):
            reply = reply(kwargs)
        if isinstance(reply, BaseException):
            raise reply
        content = reply if isinstance(reply, str) else json.dumps(reply)
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])

    def user_prompts(self):
        return [c["messages"][1]["content"] for c in self.calls]


class FakeAsyncClient:
    def __init__(self, replies=()) -> None:
        self.completions = FakeCompletions(replies)
        self.chat = SimpleNamespace(completions=self.completions)


@pytest.fixture
def fake_client_factory():
    def _make(*replies):
        return FakeAsyncClient(replies)
    return _make


@pytest.fixture
def test_settings():
    from settings.config import Settings

    return Settings(PERPLEXITY_API_KEY="test-key", AI_DISABLE_EXTERNAL=False, AI_EXTRA_REDACT_WORDS="")


def build_pdf(pages, password=None) -> bytes:
    """
    Render a text PDF. `pages` is a list of pages, each a list of rows, each a
    list of `(x, text)` cells; rows are laid out 20pt apart.
    """
    from fpdf import FPDF
    from pypdf import PdfReader, PdfWriter

    pdf = FPDF(unit="pt", format="A4")
    pdf.set_font("Helvetica", size=10)
    for rows in pages:
        pdf.add_page()
        for r, cells in enumerate(rows):
            for x, text in cells:
                pdf.text(x, 80 + r * 20, text)
    data = bytes(pdf.output())
    if password is None:
        return data

    writer = PdfWriter(clone_from=PdfReader(BytesIO(data)))
    writer.encrypt(password, algorithm="RC4-128")
    buf = BytesIO()
    writer.write(buf)
    return buf.getvalue()


STATEMENT_PAGE = [
    [(50, "Customer: Jane Doe"), (300, "jane.doe@example.com")],
    [(50, "2024-06-28"), (150, "STARBUCKS"), (400, "5.25")],
    [(50, "2024-06-29"), (150, "AMAZON REFUND"), (400, "-20.00")],
]


@pytest.fixture
def statement_pdf() -> bytes:
    return build_pdf([STATEMENT_PAGE])


@pytest.fixture
def encrypted_statement_pdf() -> bytes:
    return build_pdf([STATEMENT_PAGE], password="secret")
