"""PDF and image text extraction.

Text layers are read with PyPDF2. Scanned pages are rasterized with PyMuPDF and
either sent to a vision model as-is or run through tesseract locally.
"""
from __future__ import annotations

import io
import logging
from typing import List

import fitz  # PyMuPDF
import pytesseract
from PIL import Image
from PyPDF2 import PdfReader
from PyPDF2.errors import PdfReadError

from ..errors import ValidationError

logger = logging.getLogger(__name__)


def extract_pdf_text(stream) -> str:
    reader = PdfReader(stream)
    parts: List[str] = []
    for page in reader.pages:
        parts.append(page.extract_text() or "")
    return "\n".join(parts).strip()


def read_text_layer(pdf_bytes: bytes) -> str:
    """Text layer of a PDF, or "" when it cannot be read."""
    try:
        return extract_pdf_text(io.BytesIO(pdf_bytes))
    except (PdfReadError, ValueError, KeyError) as e:
        logger.warning("PDF text layer unreadable: %s", e)
        return ""


def text_is_meaningful(text: str, min_chars: int = 20) -> bool:
    s = (text or "").strip()
    if len(s) < min_chars:
        return False
    alpha = sum(1 for ch in s if ch.isalpha())
    ratio = alpha / max(len(s), 1)
    return ratio >= 0.25


def render_first_page(pdf_bytes: bytes, dpi: int = 200) -> bytes:
    """Rasterize page 1 to PNG bytes."""
    try:
        doc = fitz.open(stream=pdf_bytes, filetype="pdf")
    except (fitz.FileDataError, RuntimeError) as e:
        raise ValidationError(f"Could not open PDF: {e}") from e
    try:
        if len(doc) == 0:
            raise ValidationError("PDF has no pages.")
        page = doc.load_page(0)
        pix = page.get_pixmap(dpi=dpi, alpha=False)
        return pix.tobytes("png")
    finally:
        doc.close()


def _prep(img: Image.Image) -> Image.Image:
    g = img.convert("L")
    return Image.eval(g, lambda x: 0 if x < 15 else (255 if x > 240 else x))


def ocr_image_bytes(image_bytes: bytes) -> str:
    """Local OCR. Needs the tesseract binary on PATH."""
    img = Image.open(io.BytesIO(image_bytes))
    return (pytesseract.image_to_string(_prep(img), config="--psm 6") or "").strip()


def truncate_content(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + "... [content truncated]"
