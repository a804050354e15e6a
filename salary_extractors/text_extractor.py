from __future__ import annotations

from io import BytesIO
from typing import Callable, List, Tuple

import pdfplumber
from pdfminer.high_level import extract_text as pdfminer_extract_text
from pypdf import PdfReader

TextBackend = Callable[[bytes], str]

DEFAULT_MAX_PAGES = 5


def extract_text_pdfplumber(pdf_bytes: bytes, max_pages: int = DEFAULT_MAX_PAGES) -> str:
    """Extract text from the first N pages of a PDF."""
    if not pdf_bytes:
        return ""
    texts: List[str] = []
    with pdfplumber.open(BytesIO(pdf_bytes)) as pdf:
        for page in pdf.pages[:max_pages]:
            text = page.extract_text() or ""
            texts.append(text)
    return "\n".join(texts).strip()


def extract_text_pypdf(pdf_bytes: bytes, max_pages: int = DEFAULT_MAX_PAGES) -> str:
    if not pdf_bytes:
        return ""
    reader = PdfReader(BytesIO(pdf_bytes))
    texts = [page.extract_text() or "" for page in reader.pages[:max_pages]]
    return "\n".join(texts).strip()


def extract_text_pdfminer(pdf_bytes: bytes, max_pages: int = DEFAULT_MAX_PAGES) -> str:
    if not pdf_bytes:
        return ""
    return (pdfminer_extract_text(BytesIO(pdf_bytes), maxpages=max_pages) or "").strip()


TEXT_BACKENDS: List[Tuple[str, TextBackend]] = [
    ("pdfplumber", extract_text_pdfplumber),
    ("pypdf", extract_text_pypdf),
    ("pdfminer", extract_text_pdfminer),
]
