"""
API Endpoint Tests
"""
import io
import json
import os
from unittest.mock import MagicMock

import httpx
import openai

from conftest import make_completion, make_http_response
from docprompt.services import get_processor


def upload(client, data: bytes, filename: str, mimetype: str, prompt="extract text"):
    form = {"file": (io.BytesIO(data), filename, mimetype)}
    if prompt is not None:
        form["prompt"] = prompt
    return client.post("/api/process", data=form, content_type="multipart/form-data")


class TestHealthEndpoints:
    """Test health check and index endpoints"""

    def test_health(self, client):
        """Health check should report healthy with a timestamp"""
        response = client.get('/health')
        assert response.status_code == 200

        data = json.loads(response.data)
        assert data['status'] == 'healthy'
        assert 'T' in data['timestamp']

    def test_index_serves_frontend(self, client):
        """Index should serve the upload page"""
        response = client.get('/')
        assert response.status_code == 200
        assert b'/api/process' in response.data

    def test_index_missing_frontend(self, app_factory, tmp_path):
        """Missing frontend should 404 rather than crash"""
        app = app_factory(FRONTEND_DIR=str(tmp_path / "nowhere"))
        response = app.test_client().get('/')
        assert response.status_code == 404

    def test_upload_dir_created_at_startup(self, app, upload_dir):
        """App factory should create the uploads directory"""
        assert upload_dir.is_dir()


class TestProcessSuccess:
    """Test successful processing of each file kind"""

    def test_image_upload(self, client, llm, png_bytes, upload_dir):
        """Images go to the vision model inline and the temp file is removed"""
        response = upload(client, png_bytes, "photo.png", "image/png", prompt="describe this")
        assert response.status_code == 200

        data = json.loads(response.data)
        assert data == {'success': True, 'output': 'model text'}
        assert os.listdir(upload_dir) == []

        kwargs = llm.chat.completions.create.call_args.kwargs
        assert kwargs['temperature'] == 0
        assert kwargs['max_tokens'] == 2048
        user = kwargs['messages'][1]['content']
        assert user[0] == {'type': 'text', 'text': 'describe this'}
        assert user[1]['image_url']['url'].startswith('data:image/png;base64,')

    def test_text_pdf_upload(self, client, llm, text_pdf_bytes, upload_dir):
        """PDFs with a text layer send the extracted text"""
        response = upload(client, text_pdf_bytes, "report.pdf", "application/pdf", prompt="summarize")
        assert response.status_code == 200

        kwargs = llm.chat.completions.create.call_args.kwargs
        assert kwargs['model'] == 'llama3-70b-8192'
        content = kwargs['messages'][1]['content']
        assert content.startswith("Instruction: 'summarize'\n\nContent:\n")
        assert 'Revenue grew steadily' in content
        assert os.listdir(upload_dir) == []

    def test_scanned_pdf_upload(self, client, app, llm, scanned_pdf_bytes, upload_dir):
        """Scanned PDFs are rasterized and sent as an inline image"""
        assert len(scanned_pdf_bytes) < app.config["MAX_UPLOAD_BYTES"]
        response = upload(client, scanned_pdf_bytes, "scan.pdf", "application/pdf")
        assert response.status_code == 200

        data = json.loads(response.data)
        assert data == {'success': True, 'output': 'model text'}

        kwargs = llm.chat.completions.create.call_args.kwargs
        assert kwargs['model'] == app.config['GROQ_VISION_MODEL']
        user = kwargs['messages'][1]['content']
        assert user[0]['text'] == 'extract text'
        assert user[1]['image_url']['url'].startswith('data:image/png;base64,')
        assert os.listdir(upload_dir) == []

    def test_hosted_parser_upload(self, app_factory, text_pdf_bytes, upload_dir):
        """With the hosted-parser strategy PDFs go through LlamaParse"""
        app = app_factory(PDF_STRATEGY="llamaparse")
        processor = get_processor(app)
        session = MagicMock()
        session.request.side_effect = [
            make_http_response(200, {"id": "job-1"}),
            make_http_response(400, {"detail": "Job not completed yet"}),
            make_http_response(200, {"markdown": "# Parsed\n\nTable rows"}),
        ]
        processor.parser.session = session
        llm = MagicMock()
        llm.chat.completions.create.return_value = make_completion("parsed answer")
        processor.completion._client = llm

        response = upload(app.test_client(), text_pdf_bytes, "report.pdf", "application/pdf", prompt="list rows")
        assert response.status_code == 200
        assert json.loads(response.data)['output'] == 'parsed answer'
        assert session.request.call_count == 3
        content = llm.chat.completions.create.call_args.kwargs['messages'][1]['content']
        assert 'Table rows' in content
        assert os.listdir(upload_dir) == []


class TestProcessValidation:
    """Test request validation"""

    def test_missing_file(self, client, llm, upload_dir):
        """No file field should fail before any upstream call"""
        response = client.post('/api/process', data={'prompt': 'hello'}, content_type='multipart/form-data')
        assert response.status_code == 400

        data = json.loads(response.data)
        assert data == {'success': False, 'error': 'No file uploaded.'}
        llm.chat.completions.create.assert_not_called()
        assert os.listdir(upload_dir) == []

    def test_missing_prompt(self, client, llm, png_bytes, upload_dir):
        """No prompt should fail before any upstream call"""
        response = upload(client, png_bytes, "photo.png", "image/png", prompt=None)
        assert response.status_code == 400
        assert json.loads(response.data)['error'] == 'No prompt provided.'
        llm.chat.completions.create.assert_not_called()
        assert os.listdir(upload_dir) == []

    def test_blank_prompt(self, client, llm, png_bytes):
        """Whitespace-only prompt counts as missing"""
        response = upload(client, png_bytes, "photo.png", "image/png", prompt="   ")
        assert response.status_code == 400
        llm.chat.completions.create.assert_not_called()

    def test_disallowed_mime_type(self, client, llm, upload_dir):
        """Non image/PDF uploads are rejected"""
        response = upload(client, b"a,b\n1,2\n", "data.csv", "text/csv")
        assert response.status_code == 400
        assert json.loads(response.data)['error'] == 'Only image and PDF files are allowed.'
        llm.chat.completions.create.assert_not_called()
        assert os.listdir(upload_dir) == []

    def test_pdf_disabled(self, app_factory, text_pdf_bytes):
        """Image-only deployments reject PDFs"""
        app = app_factory(ALLOW_PDF=False)
        response = upload(app.test_client(), text_pdf_bytes, "report.pdf", "application/pdf")
        assert response.status_code == 400
        assert json.loads(response.data)['error'] == 'Only image files are allowed.'

    def test_oversize_file(self, client, llm, upload_dir):
        """Files above the size cap are rejected and nothing stays on disk"""
        response = upload(client, b"\x89PNG" + b"0" * (100 * 1024), "big.png", "image/png")
        assert response.status_code == 400
        assert json.loads(response.data)['error'] == 'File too large. Maximum size is 64 KB.'
        llm.chat.completions.create.assert_not_called()
        assert os.listdir(upload_dir) == []

    def test_body_over_request_limit(self, app_factory, upload_dir):
        """Bodies Werkzeug refuses outright still get the JSON envelope"""
        app = app_factory(MAX_CONTENT_LENGTH=8 * 1024)
        response = upload(app.test_client(), b"0" * (32 * 1024), "big.png", "image/png")
        assert response.status_code == 400

        data = json.loads(response.data)
        assert data['success'] is False
        assert data['error'] == 'File too large. Maximum size is 64 KB.'
        assert os.listdir(upload_dir) == []

    def test_prompt_over_form_limit(self, client, llm, png_bytes, upload_dir):
        """An oversized prompt is reported as a prompt problem, not a file problem"""
        response = upload(client, png_bytes, "photo.png", "image/png", prompt="x" * (100 * 1024))
        assert response.status_code == 400

        data = json.loads(response.data)
        assert data == {'success': False, 'error': 'Prompt too long. Maximum size is 64 KB.'}
        llm.chat.completions.create.assert_not_called()
        assert os.listdir(upload_dir) == []

    def test_long_prompt_under_form_limit(self, client, llm, png_bytes):
        """Prompts below the form limit are accepted"""
        response = upload(client, png_bytes, "photo.png", "image/png", prompt="x" * (8 * 1024))
        assert response.status_code == 200


class TestProcessErrors:
    """Test mapping of processing failures"""

    def test_missing_api_key(self, app_factory, png_bytes, upload_dir):
        """Missing Groq key is a clear 500 configuration error"""
        app = app_factory(GROQ_API_KEY="")
        response = upload(app.test_client(), png_bytes, "photo.png", "image/png")
        assert response.status_code == 500
        assert json.loads(response.data)['error'] == 'GROQ_API_KEY is not set in environment variables'
        assert os.listdir(upload_dir) == []

    def test_missing_llama_key(self, app_factory, text_pdf_bytes):
        """Hosted-parser strategy needs the LlamaParse key"""
        app = app_factory(PDF_STRATEGY="llamaparse", LLAMA_CLOUD_API_KEY="")
        response = upload(app.test_client(), text_pdf_bytes, "report.pdf", "application/pdf")
        assert response.status_code == 500
        assert 'LLAMA_CLOUD_API_KEY' in json.loads(response.data)['error']

    def test_hosted_parser_timeout(self, app_factory, text_pdf_bytes, upload_dir):
        """A parse job that never finishes is a 500 and the temp file is still removed"""
        app = app_factory(PDF_STRATEGY="llamaparse", POLL_MAX_ATTEMPTS=3)
        processor = get_processor(app)
        session = MagicMock()
        session.request.side_effect = [make_http_response(200, {"id": "job-1"})] + [
            make_http_response(400, {"detail": "Job not completed yet"}) for _ in range(3)
        ]
        processor.parser.session = session
        llm = MagicMock()
        processor.completion._client = llm

        response = upload(app.test_client(), text_pdf_bytes, "report.pdf", "application/pdf")
        assert response.status_code == 500

        data = json.loads(response.data)
        assert data['success'] is False
        assert 'timeout' in data['error']
        assert session.request.call_count == 4
        llm.chat.completions.create.assert_not_called()
        assert os.listdir(upload_dir) == []

    def test_upstream_error(self, client, llm, png_bytes, upload_dir):
        """Non-2xx from Groq surfaces status and body"""
        request = httpx.Request("POST", "https://api.groq.com/openai/v1/chat/completions")
        llm.chat.completions.create.side_effect = openai.RateLimitError(
            "rate limited",
            response=httpx.Response(429, text='{"error":"slow down"}', request=request),
            body=None,
        )
        response = upload(client, png_bytes, "photo.png", "image/png")
        assert response.status_code == 500

        data = json.loads(response.data)
        assert data['success'] is False
        assert data['upstream_status'] == 429
        assert 'slow down' in data['error']
        assert os.listdir(upload_dir) == []

    def test_empty_model_output(self, client, llm, png_bytes, upload_dir):
        """Empty model content is an error, not an empty success"""
        llm.chat.completions.create.return_value = make_completion("")
        response = upload(client, png_bytes, "photo.png", "image/png")
        assert response.status_code == 500
        assert json.loads(response.data)['error'] == 'No output text received from Groq'
        assert os.listdir(upload_dir) == []

    def test_unexpected_error_verbose(self, client, llm, png_bytes):
        """Development responses include the error detail"""
        llm.chat.completions.create.side_effect = RuntimeError("kaboom")
        response = upload(client, png_bytes, "photo.png", "image/png")
        assert response.status_code == 500
        assert 'kaboom' in json.loads(response.data)['error']

    def test_unexpected_error_hidden_in_production(self, app_factory, png_bytes, upload_dir):
        """Production responses hide unexpected error details"""
        app = app_factory(VERBOSE_ERRORS=False)
        llm = MagicMock()
        llm.chat.completions.create.side_effect = RuntimeError("kaboom")
        get_processor(app).completion._client = llm

        response = upload(app.test_client(), png_bytes, "photo.png", "image/png")
        assert response.status_code == 500
        assert json.loads(response.data)['error'] == 'Internal Server Error'
        assert os.listdir(upload_dir) == []

    def test_cleanup_tolerates_missing_file(self, client, llm, png_bytes, upload_dir):
        """A temp file deleted mid-request does not turn into an error"""
        def vanish(**kwargs):
            for name in os.listdir(upload_dir):
                os.remove(upload_dir / name)
                return make_completion("still fine")

        llm.chat.completions.create.side_effect = vanish
        response = upload(client, png_bytes, "photo.png", "image/png")
        assert response.status_code == 200
        assert json.loads(response.data)['output'] == 'still fine'
