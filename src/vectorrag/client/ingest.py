"""PDF ingestion: turn a PDF file into document content plus metadata."""

import logging
from pathlib import Path
from typing import Any

import fitz  # PyMuPDF

logger = logging.getLogger(__name__)

# PDF info dictionary key -> document metadata key
PDF_INFO_FIELDS = {
    "title": "title",
    "author": "author",
    "subject": "subject",
    "keywords": "keywords",
    "creationDate": "pdf_creation_date",
}


def read_pdf_info(doc: Any) -> dict[str, Any]:
    """Copy the non-empty fields of a PDF info dictionary listed in PDF_INFO_FIELDS."""
    info = doc.metadata or {}
    return {target: info[key] for key, target in PDF_INFO_FIELDS.items() if info.get(key)}


def extract_document_from_pdf(pdf_path: Path, language: str | None = None) -> dict[str, Any]:
    """Read a PDF into the document shape accepted by rag_add_document.

    Chunking and embedding happen on the server side; this only reads the file.

    Args:
        pdf_path: Path to the PDF file
        language: Optional language code recorded in the metadata (e.g. "en")

    Returns:
        dict: {"content": str, "metadata": dict} where metadata holds source,
            name, file size, file dates, page count, the PDF info fields and
            the language when given
    """
    file_stat = pdf_path.stat()

    with fitz.open(pdf_path) as doc:
        text = "".join(page.get_text() for page in doc)
        metadata: dict[str, Any] = {
            "source": pdf_path.name,
            "name": pdf_path.stem,
            "file_size": file_stat.st_size,
            "modification_date": file_stat.st_mtime,
            "creation_date": file_stat.st_ctime,
            "page_count": len(doc),
            **read_pdf_info(doc),
        }

    if language:
        metadata["language"] = language

    logger.info(f"📄 {pdf_path.name}: {len(text)} characters, {metadata['page_count']} page(s)")
    return {"content": text, "metadata": metadata}
