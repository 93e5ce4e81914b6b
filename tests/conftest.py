"""Shared test fixtures — async SQLite in-memory DB, test client and file builders."""

from collections.abc import AsyncGenerator, Callable
from io import BytesIO

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

# Import all models so metadata is populated
import docshelf.models  # noqa: F401
from docshelf.core.cache import TTLCache
from docshelf.core.database import get_session
from docshelf.main import app
from docshelf.services.ranking import RelevanceRanker


async def _create_engine():
    eng = create_async_engine(
        "sqlite+aiosqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with eng.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    return eng


@pytest.fixture
async def engine():
    """A fresh in-memory database per test."""
    eng = await _create_engine()
    yield eng
    await eng.dispose()


@pytest.fixture
def test_session_factory(engine):
    """Session factory bound to the test SQLite engine."""
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(test_session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with test_session_factory() as sess:
        yield sess
        await sess.rollback()


@pytest.fixture
async def other_session() -> AsyncGenerator[AsyncSession, None]:
    """Session on a second, independent database (for import round-trips)."""
    eng = await _create_engine()
    factory = sessionmaker(eng, class_=AsyncSession, expire_on_commit=False)
    async with factory() as sess:
        yield sess
    await eng.dispose()


@pytest.fixture
async def client(session) -> AsyncGenerator[AsyncClient, None]:
    """HTTPX async test client with DB session override."""

    async def _override_session():
        yield session

    app.dependency_overrides[get_session] = _override_session
    app.state.context_cache = TTLCache()
    app.state.ranker = RelevanceRanker(offload=None)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
    app.state.context_cache.clear()


@pytest.fixture
def make_pdf() -> Callable[..., bytes]:
    """Build a PDF with one page of Helvetica text per argument."""
    from pypdf import PdfWriter
    from pypdf.generic import DecodedStreamObject, DictionaryObject, NameObject

    def _make(*page_texts: str) -> bytes:
        writer = PdfWriter()
        for text in page_texts:
            page = writer.add_blank_page(width=300, height=72)

            font_dict = DictionaryObject()
            font_dict.update(
                {
                    NameObject("/Type"): NameObject("/Font"),
                    NameObject("/Subtype"): NameObject("/Type1"),
                    NameObject("/BaseFont"): NameObject("/Helvetica"),
                }
            )
            font_resources = DictionaryObject()
            font_resources[NameObject("/F1")] = font_dict
            resources = DictionaryObject()
            resources[NameObject("/Font")] = font_resources

            stream = DecodedStreamObject()
            stream.set_data(f"BT /F1 12 Tf 10 50 Td ({text}) Tj ET".encode())

            page[NameObject("/Resources")] = resources
            page[NameObject("/Contents")] = stream

        buf = BytesIO()
        writer.write(buf)
        return buf.getvalue()

    return _make


@pytest.fixture
def make_docx() -> Callable[..., bytes]:
    """Build a .docx with one paragraph per argument."""
    from docx import Document

    def _make(*paragraphs: str) -> bytes:
        doc = Document()
        for text in paragraphs:
            doc.add_paragraph(text)
        buf = BytesIO()
        doc.save(buf)
        return buf.getvalue()

    return _make
