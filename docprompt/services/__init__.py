"""Extraction, hosted-parser and completion services."""
from __future__ import annotations

from flask import Flask

from ..models import ProcessingSettings
from .completion_service import CompletionClient
from .llamaparse_service import LlamaParseClient, PollPolicy
from .processor import DocumentProcessor

EXTENSION_KEY = "docprompt.processor"


def build_processor(app: Flask) -> DocumentProcessor:
    """Wire the processor from app.config. Called once by the app factory."""
    conf = app.config
    settings = ProcessingSettings.from_mapping(conf)
    timeout = float(conf["UPSTREAM_TIMEOUT_SECONDS"])
    completion = CompletionClient(
        api_key=settings.groq_api_key,
        base_url=conf["GROQ_BASE_URL"],
        timeout=timeout,
    )
    parser = LlamaParseClient(
        api_key=settings.llama_cloud_api_key,
        base_url=conf["LLAMA_CLOUD_BASE_URL"],
        timeout=timeout,
        poll_policy=PollPolicy(
            interval=float(conf["POLL_INTERVAL_SECONDS"]),
            max_attempts=int(conf["POLL_MAX_ATTEMPTS"]),
        ),
    )
    return DocumentProcessor(settings, completion, parser)


def get_processor(app: Flask) -> DocumentProcessor:
    return app.extensions[EXTENSION_KEY]
