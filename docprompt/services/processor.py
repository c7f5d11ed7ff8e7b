"""Turns one stored upload plus a prompt into model output."""
from __future__ import annotations

import logging
from typing import Callable, Dict, Optional

import pytesseract

from ..errors import ConfigurationError, ProcessingError
from ..models import Extraction, FileKind, OcrMode, PdfStrategy, ProcessingSettings, Upload
from . import pdf_service
from .completion_service import CompletionClient, build_request
from .llamaparse_service import LlamaParseClient

logger = logging.getLogger(__name__)


class DocumentProcessor:
    """Upload -> Extraction -> completion text.

    Local PDFs are inspected once to pick a FileKind, then handled by the
    extractor registered for that kind. With the hosted-parser strategy every
    PDF goes to LlamaParse instead.
    """

    def __init__(
        self,
        settings: ProcessingSettings,
        completion: CompletionClient,
        parser: Optional[LlamaParseClient] = None,
    ):
        self.settings = settings
        self.completion = completion
        self.parser = parser
        self._extractors: Dict[FileKind, Callable[[Upload, bytes, str], Extraction]] = {
            FileKind.IMAGE: self._from_image,
            FileKind.TEXT_PDF: self._from_text_layer,
            FileKind.SCANNED_PDF: self._from_scan,
        }

    @property
    def uses_hosted_parser(self) -> bool:
        return self.settings.pdf_strategy is PdfStrategy.LLAMAPARSE

    def missing_configuration(self) -> Optional[str]:
        if not self.settings.groq_api_key:
            return "GROQ_API_KEY is not set in environment variables"
        if self.uses_hosted_parser and not self.settings.llama_cloud_api_key:
            return "LLAMA_CLOUD_API_KEY is not set in environment variables"
        return None

    def check_configuration(self) -> None:
        msg = self.missing_configuration()
        if msg:
            raise ConfigurationError(msg)

    def classify(self, upload: Upload, data: bytes) -> tuple:
        """Pick the FileKind. Returns (kind, text layer) so PDFs are only read once."""
        if not upload.is_pdf:
            return FileKind.IMAGE, ""
        text = pdf_service.read_text_layer(data)
        if pdf_service.text_is_meaningful(text, self.settings.min_text_layer_chars):
            return FileKind.TEXT_PDF, text
        return FileKind.SCANNED_PDF, text

    def extract(self, upload: Upload) -> Extraction:
        if upload.is_pdf and self.uses_hosted_parser:
            return self._from_hosted_parser(upload)
        data = upload.read_bytes()
        kind, text = self.classify(upload, data)
        logger.info("Processing %s as %s", upload.original_name, kind.value)
        return self._extractors[kind](upload, data, text)

    def process(self, upload: Upload, prompt: str) -> str:
        """Callers run check_configuration first, after validating the request."""
        extraction = self.extract(upload)
        request = build_request(self.settings, prompt, extraction)
        return self.completion.complete(request)

    # extractors

    def _from_image(self, upload: Upload, data: bytes, text: str) -> Extraction:
        return Extraction(kind=FileKind.IMAGE, image_bytes=data, image_mime=upload.mime_type)

    def _from_text_layer(self, upload: Upload, data: bytes, text: str) -> Extraction:
        return Extraction(
            kind=FileKind.TEXT_PDF,
            text=pdf_service.truncate_content(text, self.settings.max_content_chars),
        )

    def _from_scan(self, upload: Upload, data: bytes, text: str) -> Extraction:
        png = pdf_service.render_first_page(data, dpi=self.settings.raster_dpi)
        if self.settings.ocr_mode is OcrMode.VISION:
            return Extraction(kind=FileKind.SCANNED_PDF, image_bytes=png, image_mime="image/png")

        try:
            ocr_text = pdf_service.ocr_image_bytes(png)
        except pytesseract.TesseractNotFoundError as e:
            raise ConfigurationError("OCR engine not available: tesseract is not installed") from e
        if not ocr_text:
            raise ProcessingError("OCR returned no readable text")
        return Extraction(
            kind=FileKind.SCANNED_PDF,
            text=pdf_service.truncate_content(ocr_text, self.settings.max_content_chars),
        )

    def _from_hosted_parser(self, upload: Upload) -> Extraction:
        if self.parser is None:
            raise ConfigurationError("Hosted parser is not configured")
        markdown = self.parser.parse(upload.path, upload.original_name, upload.mime_type)
        return Extraction(
            kind=FileKind.TEXT_PDF,
            text=pdf_service.truncate_content(markdown, self.settings.max_content_chars),
        )
