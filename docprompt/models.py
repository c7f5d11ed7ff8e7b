"""
Request-scoped data model

Key types:
- Upload: the temporary file written from the multipart body
- FileKind: what the upload turned out to be, chosen once after inspection
- Extraction: text or inline image ready to send to the model
- CompletionRequest: role-tagged messages for the chat-completion call
- ProcessingSettings: configuration snapshot handed to the processor at startup
"""
from __future__ import annotations

import base64
import enum
from dataclasses import dataclass
from typing import Any, Dict, List, Optional


class FileKind(enum.Enum):
    IMAGE = "image"
    TEXT_PDF = "text_pdf"
    SCANNED_PDF = "scanned_pdf"


class PdfStrategy(enum.Enum):
    LOCAL = "local"
    LLAMAPARSE = "llamaparse"


class OcrMode(enum.Enum):
    VISION = "vision"
    TESSERACT = "tesseract"


PDF_MIME = "application/pdf"


@dataclass
class Upload:
    original_name: str
    mime_type: str
    size: int
    path: str

    @property
    def is_pdf(self) -> bool:
        return self.mime_type == PDF_MIME

    def read_bytes(self) -> bytes:
        with open(self.path, "rb") as f:
            return f.read()


@dataclass
class Extraction:
    """Either plain text or an inline image; never both."""
    kind: FileKind
    text: str = ""
    image_bytes: bytes = b""
    image_mime: str = "image/png"

    @property
    def is_image(self) -> bool:
        return bool(self.image_bytes)

    def data_url(self) -> str:
        encoded = base64.b64encode(self.image_bytes).decode("ascii")
        return f"data:{self.image_mime};base64,{encoded}"


@dataclass
class CompletionRequest:
    model: str
    messages: List[Dict[str, Any]]
    temperature: float = 0.0
    max_tokens: int = 2048


@dataclass(frozen=True)
class ProcessingSettings:
    upload_dir: str
    max_upload_bytes: int = 25 * 1024 * 1024
    allow_pdf: bool = True
    pdf_strategy: PdfStrategy = PdfStrategy.LOCAL
    ocr_mode: OcrMode = OcrMode.VISION
    min_text_layer_chars: int = 20
    max_content_chars: int = 10000
    raster_dpi: int = 200
    system_prompt: str = "You are a helpful assistant."
    text_model: str = "llama3-70b-8192"
    vision_model: str = "meta-llama/llama-4-scout-17b-16e-instruct"
    max_tokens: int = 2048
    groq_api_key: str = ""
    llama_cloud_api_key: str = ""

    @classmethod
    def from_mapping(cls, conf: Dict[str, Any]) -> "ProcessingSettings":
        """Build from a Flask config mapping."""
        return cls(
            upload_dir=conf["UPLOAD_DIR"],
            max_upload_bytes=int(conf["MAX_UPLOAD_BYTES"]),
            allow_pdf=bool(conf.get("ALLOW_PDF", True)),
            pdf_strategy=PdfStrategy(conf.get("PDF_STRATEGY", "local")),
            ocr_mode=OcrMode(conf.get("OCR_MODE", "vision")),
            min_text_layer_chars=int(conf.get("MIN_TEXT_LAYER_CHARS", 20)),
            max_content_chars=int(conf.get("MAX_CONTENT_CHARS", 10000)),
            raster_dpi=int(conf.get("RASTER_DPI", 200)),
            system_prompt=conf.get("SYSTEM_PROMPT") or "You are a helpful assistant.",
            text_model=conf["GROQ_MODEL"],
            vision_model=conf["GROQ_VISION_MODEL"],
            max_tokens=int(conf["COMPLETION_MAX_TOKENS"]),
            groq_api_key=(conf.get("GROQ_API_KEY") or "").strip(),
            llama_cloud_api_key=(conf.get("LLAMA_CLOUD_API_KEY") or "").strip(),
        )

    def is_allowed_mime(self, mime_type: Optional[str]) -> bool:
        mime = (mime_type or "").lower()
        if mime.startswith("image/"):
            return True
        if mime == PDF_MIME:
            return self.allow_pdf
        return False
