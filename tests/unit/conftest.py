"""Shared fixtures: in-memory Word documents and isolated settings."""

import io

import pytest
from docx import Document

from docfiller.core.config import Settings
from docfiller.core.factory import ComponentFactory
from docfiller.interfaces.completion import BaseCompletionProvider, CompletionRequest, CompletionResult
from docfiller.strategies.parsers import DocxTextParser


def make_docx(*paragraphs, table: list[list[str]] | None = None, header: str | None = None) -> bytes:
    """Build a .docx in memory.

    Each paragraph is a string, or a list of strings written as separate
    runs (the way Word splits text it has edited).
    """
    doc = Document()
    for paragraph in paragraphs:
        if isinstance(paragraph, str):
            doc.add_paragraph(paragraph)
        else:
            p = doc.add_paragraph()
            for run in paragraph:
                p.add_run(run)
    if table:
        grid = doc.add_table(rows=len(table), cols=max(len(row) for row in table))
        for r, row in enumerate(table):
            for c, text in enumerate(row):
                grid.rows[r].cells[c].paragraphs[0].add_run(text)
    if header is not None:
        doc.sections[0].header.paragraphs[0].add_run(header)

    buffer = io.BytesIO()
    doc.save(buffer)
    return buffer.getvalue()


def docx_text(content: bytes) -> str:
    """Flatten a .docx to its paragraph text."""
    return DocxTextParser().parse(content).content


def table_rows(content: bytes) -> list[list[str]]:
    """Return the cell text of the first table in a .docx."""
    doc = Document(io.BytesIO(content))
    return [[cell.text for cell in row.cells] for row in doc.tables[0].rows]


@pytest.fixture(name="make_docx")
def make_docx_fixture():
    return make_docx


@pytest.fixture(name="docx_text")
def docx_text_fixture():
    return docx_text


@pytest.fixture(name="table_rows")
def table_rows_fixture():
    return table_rows


@pytest.fixture
def settings(tmp_path):
    """Settings isolated from the environment and the working directory."""
    template_dir = tmp_path / "templates"
    template_dir.mkdir()
    return Settings(
        _env_file=None,
        openai_api_key="sk-test",
        xai_api_key="",
        template_dir=template_dir,
        log_dir=tmp_path / "logs",
    )


@pytest.fixture
def factory(settings):
    return ComponentFactory(settings)


class FakeProvider(BaseCompletionProvider):
    """Completion provider returning a canned reply and recording requests."""

    def __init__(
        self,
        text: str = "{}",
        provider: str = "openai",
        error: Exception | None = None,
        **result_fields,
    ) -> None:
        self.text = text
        self.provider = provider
        self.error = error
        self.result_fields = result_fields
        self.requests: list[CompletionRequest] = []

    @property
    def name(self):
        return self.provider

    async def complete(self, request: CompletionRequest) -> CompletionResult:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return CompletionResult(text=self.text, provider=self.provider, **self.result_fields)


@pytest.fixture(name="fake_provider")
def fake_provider_fixture():
    return FakeProvider
