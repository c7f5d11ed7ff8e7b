"""LlamaParse client: submit a document, then poll for its markdown."""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

import requests

from ..errors import ParsingTimeout, UpstreamEmptyResponse, UpstreamError

logger = logging.getLogger(__name__)

SERVICE = "LlamaParse"
NOT_COMPLETE_DETAIL = "Job not completed yet"

UPLOAD_OPTIONS: Dict[str, str] = {
    "parse_mode": "parse_page_with_agent",
    "model": "openai-gpt-4-1-mini",
    "high_res_ocr": "true",
    "adaptive_long_table": "true",
    "outlined_table_extraction": "true",
    "output_tables_as_HTML": "true",
    "page_separator": "\n\n---\n\n",
}


def _json_or_none(resp: requests.Response) -> Optional[Dict[str, Any]]:
    try:
        data = resp.json()
    except ValueError:
        return None
    return data if isinstance(data, dict) else None


def job_not_complete(resp: requests.Response) -> bool:
    """A 400 carrying the "not yet complete" marker means keep polling."""
    if resp.status_code != 400:
        return False
    data = _json_or_none(resp)
    return bool(data) and data.get("detail") == NOT_COMPLETE_DETAIL


@dataclass
class PollPolicy:
    """Fixed-interval polling with a hard attempt cap.

    The wait happens before each attempt, so a job is never polled the instant
    it was submitted. ``sleep`` is injectable so tests do not wait.
    """
    interval: float = 5.0
    max_attempts: int = 60
    should_continue: Callable[[requests.Response], bool] = job_not_complete
    sleep: Callable[[float], None] = time.sleep

    def run(self, attempt: Callable[[int], requests.Response]) -> requests.Response:
        for n in range(1, self.max_attempts + 1):
            self.sleep(self.interval)
            resp = attempt(n)
            if not self.should_continue(resp):
                return resp
        raise ParsingTimeout("Parsing timeout - job took too long to complete")


class LlamaParseClient:

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.cloud.llamaindex.ai/api/v1/parsing",
        timeout: float = 60.0,
        poll_policy: Optional[PollPolicy] = None,
        session: Optional[requests.Session] = None,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.poll_policy = poll_policy or PollPolicy()
        self.session = session or requests.Session()

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.api_key}"}

    def _request(self, method: str, url: str, **kwargs) -> requests.Response:
        try:
            return self.session.request(method, url, headers=self._headers(), timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise UpstreamError(SERVICE, f"{type(e).__name__}: {e}") from e

    def upload(self, path: str, filename: str, mime_type: str) -> str:
        with open(path, "rb") as f:
            resp = self._request(
                "POST",
                f"{self.base_url}/upload",
                files={"file": (filename, f, mime_type)},
                data=UPLOAD_OPTIONS,
            )
        if not resp.ok:
            raise UpstreamError(SERVICE, "upload failed", resp.status_code, resp.text)
        data = _json_or_none(resp) or {}
        job_id = data.get("id")
        if not job_id:
            raise UpstreamEmptyResponse("No job id returned by LlamaParse.")
        logger.info("File uploaded to LlamaParse. Job ID: %s", job_id)
        return str(job_id)

    def fetch_markdown(self, job_id: str) -> str:
        url = f"{self.base_url}/job/{job_id}/result/markdown"
        policy = self.poll_policy

        def attempt(n: int) -> requests.Response:
            logger.info("Polling for job %s - Attempt %d/%d", job_id, n, policy.max_attempts)
            return self._request("GET", url)

        resp = policy.run(attempt)
        if not resp.ok:
            raise UpstreamError(SERVICE, "job status check failed", resp.status_code, resp.text)
        data = _json_or_none(resp) or {}
        markdown = data.get("markdown") or ""
        if not markdown.strip():
            raise UpstreamEmptyResponse("No content returned by LlamaParse.")
        logger.info("Parsing completed for job %s", job_id)
        return markdown

    def parse(self, path: str, filename: str, mime_type: str) -> str:
        job_id = self.upload(path, filename, mime_type)
        return self.fetch_markdown(job_id)
