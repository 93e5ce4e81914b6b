"""Text extraction from uploaded files (TXT, MD, PDF, DOCX).

Parsing never raises for a bad file: the outcome is reported on the
returned ``ParsedFile`` so one broken upload cannot abort a batch.
"""

from __future__ import annotations

import logging
import unicodedata
from dataclasses import dataclass
from io import BytesIO
from pathlib import Path

from docshelf.models.document import DocType, ParseStatus
from docshelf.services.chunking import normalize_text

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {".txt", ".md", ".pdf", ".docx"}
MAX_FILE_SIZE = 10 * 1024 * 1024  # 10 MB

UNSUPPORTED_MESSAGE = "Unsupported file type. Use .txt, .md, .pdf, or .docx."


class ParseError(ValueError):
    """The file could not be turned into text."""


@dataclass
class ParsedFile:
    doc_type: DocType
    extracted_text: str
    parse_status: ParseStatus
    parse_error: str = ""

    @property
    def ok(self) -> bool:
        return self.parse_status != ParseStatus.ERROR


def detect_doc_type(filename: str) -> DocType:
    ext = Path(filename or "").suffix.lower().lstrip(".")
    try:
        return DocType(ext)
    except ValueError:
        return DocType.UNKNOWN


def parse_upload(filename: str, content: bytes) -> ParsedFile:
    """Extract plain text from file bytes based on the file extension."""
    doc_type = detect_doc_type(filename)

    if doc_type in (DocType.TXT, DocType.MD):
        return _parse_plain(doc_type, content)

    if doc_type == DocType.PDF:
        try:
            text, failed_pages = _extract_pdf(content)
        except Exception as exc:
            logger.warning("PDF parse failed for %s: %s", filename, exc)
            return _failed(doc_type, f"PDF parse failed: {str(exc) or 'unknown error'}")
        if failed_pages:
            return ParsedFile(
                doc_type=doc_type,
                extracted_text=text,
                parse_status=ParseStatus.PARTIAL,
                parse_error=f"Could not read {len(failed_pages)} page(s): "
                + ", ".join(str(p) for p in failed_pages),
            )
        return ParsedFile(doc_type=doc_type, extracted_text=text, parse_status=ParseStatus.PARSED)

    if doc_type == DocType.DOCX:
        try:
            text = _extract_docx(content)
        except Exception as exc:
            logger.warning("DOCX parse failed for %s: %s", filename, exc)
            return _failed(doc_type, f"DOCX parse failed: {str(exc) or 'unknown error'}")
        return ParsedFile(doc_type=doc_type, extracted_text=text, parse_status=ParseStatus.PARSED)

    return _failed(doc_type, UNSUPPORTED_MESSAGE)


def _clean(text: str) -> str:
    return normalize_text(unicodedata.normalize("NFC", text))


def _failed(doc_type: DocType, message: str) -> ParsedFile:
    return ParsedFile(
        doc_type=doc_type,
        extracted_text="",
        parse_status=ParseStatus.ERROR,
        parse_error=message,
    )


def _parse_plain(doc_type: DocType, content: bytes) -> ParsedFile:
    try:
        return ParsedFile(
            doc_type=doc_type,
            extracted_text=_clean(content.decode("utf-8")),
            parse_status=ParseStatus.PARSED,
        )
    except UnicodeDecodeError:
        return ParsedFile(
            doc_type=doc_type,
            extracted_text=_clean(content.decode("utf-8", errors="replace")),
            parse_status=ParseStatus.PARTIAL,
            parse_error="File is not valid UTF-8; undecodable bytes were replaced.",
        )


def _extract_pdf(content: bytes) -> tuple[str, list[int]]:
    from pypdf import PdfReader

    reader = PdfReader(BytesIO(content))
    pages: list[str] = []
    failed: list[int] = []
    for number, page in enumerate(reader.pages, start=1):
        try:
            pages.append(page.extract_text() or "")
        except Exception:
            logger.debug("Text extraction failed on PDF page %d", number)
            failed.append(number)
    if failed and not pages:
        raise ParseError("no readable pages")
    return _clean("\n\n".join(pages)), failed


def _extract_docx(content: bytes) -> str:
    from docx import Document

    doc = Document(BytesIO(content))
    return _clean("\n".join(p.text for p in doc.paragraphs))
