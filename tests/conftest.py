"""
Test Configuration and Fixtures
"""
import io
import json
from unittest.mock import MagicMock

import fitz
import pytest
import requests
from PIL import Image

from docprompt import create_app
from docprompt.services import get_processor


def make_png(size=(48, 32), color="white") -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", size, color).save(buf, format="PNG")
    return buf.getvalue()


def make_text_pdf(lines) -> bytes:
    doc = fitz.open()
    page = doc.new_page()
    y = 72
    for line in lines:
        page.insert_text((72, y), line, fontsize=11)
        y += 16
    data = doc.tobytes()
    doc.close()
    return data


def make_scanned_pdf() -> bytes:
    """One page holding only an image: no text layer."""
    doc = fitz.open()
    page = doc.new_page()
    page.insert_image(fitz.Rect(72, 72, 300, 220), stream=make_png((40, 24), "gray"))
    data = doc.tobytes(deflate=True)
    doc.close()
    return data


def make_completion(content):
    choice = MagicMock()
    choice.message.content = content
    response = MagicMock()
    response.choices = [choice]
    return response


def make_http_response(status: int, payload=None, text: str = "") -> requests.Response:
    resp = requests.Response()
    resp.status_code = status
    resp.encoding = "utf-8"
    resp._content = (json.dumps(payload) if payload is not None else text).encode("utf-8")
    return resp


@pytest.fixture
def upload_dir(tmp_path):
    return tmp_path / "data" / "uploads"


@pytest.fixture
def app_factory(upload_dir):
    """Build an app with config overrides on top of the testing config"""
    def build(**overrides):
        conf = {"UPLOAD_DIR": str(upload_dir), "MAX_UPLOAD_BYTES": 64 * 1024}
        conf.update(overrides)
        return create_app('testing', overrides=conf)
    return build


@pytest.fixture
def app(app_factory):
    """Create application for testing"""
    return app_factory()


@pytest.fixture
def client(app):
    """Create test client"""
    return app.test_client()


@pytest.fixture
def llm(app):
    """Mock chat-completion client wired into the app's processor"""
    mock_client = MagicMock()
    mock_client.chat.completions.create.return_value = make_completion("model text")
    get_processor(app).completion._client = mock_client
    return mock_client


@pytest.fixture
def png_bytes():
    return make_png()


@pytest.fixture
def text_pdf_bytes():
    return make_text_pdf([
        "Quarterly report for the northern region.",
        "Revenue grew steadily across every product line this quarter.",
        "Operating costs stayed flat while headcount increased slightly.",
    ])


@pytest.fixture
def scanned_pdf_bytes():
    return make_scanned_pdf()
