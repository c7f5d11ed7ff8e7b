"""
docprompt Configuration
Supports AWS Parameter Store for production secrets
"""
import logging
import os
from typing import Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

logger = logging.getLogger(__name__)

BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    return int(raw) if raw else default


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    return float(raw) if raw else default


def environment_name() -> str:
    """FLASK_ENV, then NODE_ENV, then development"""
    return (os.environ.get("FLASK_ENV") or os.environ.get("NODE_ENV") or "development").strip().lower()


def get_parameter(name: str, default: str = "") -> str:
    """Get parameter from environment or AWS Parameter Store"""
    # Environment variable takes precedence
    env_key = name.upper().replace("-", "_").replace("/", "_")
    if os.environ.get(env_key):
        return os.environ[env_key]

    if not os.environ.get("USE_PARAMETER_STORE"):
        return default

    path = os.environ.get("PARAMETER_STORE_PATH", "/docprompt/prod/")
    try:
        ssm = boto3.client("ssm", region_name=os.environ.get("AWS_REGION", "us-west-2"))
        response = ssm.get_parameter(Name=f"{path}{name}", WithDecryption=True)
        return response["Parameter"]["Value"]
    except (BotoCoreError, ClientError) as e:
        logger.warning("Could not load %s%s from Parameter Store: %s", path, name, e)
    return default


class Config:
    """Base configuration"""
    # Flask
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-change-in-production")
    PORT = _env_int("PORT", 5000)
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Filesystem
    DATA_DIR = os.environ.get("DATA_DIR") or os.path.join(BASE_DIR, "data")
    UPLOAD_DIR = os.environ.get("UPLOAD_DIR") or os.path.join(DATA_DIR, "uploads")
    FRONTEND_DIR = os.environ.get("FRONTEND_DIR") or os.path.join(os.path.dirname(os.path.abspath(__file__)), "static")

    # Uploads
    MAX_UPLOAD_BYTES = _env_int("MAX_UPLOAD_MB", 25) * 1024 * 1024
    # Werkzeug rejects anything past this before the view runs; leave room for form overhead
    MAX_CONTENT_LENGTH = MAX_UPLOAD_BYTES + 1024 * 1024
    # Non-file fields (the prompt); Werkzeug answers 413 past this
    MAX_FORM_MEMORY_SIZE = _env_int("MAX_PROMPT_KB", 64) * 1024
    ALLOW_PDF = os.environ.get("ALLOW_PDF", "1").strip().lower() in ("1", "true", "yes", "on")

    # Processing
    PDF_STRATEGY = os.environ.get("PDF_STRATEGY", "local").strip().lower()
    OCR_MODE = os.environ.get("OCR_MODE", "vision").strip().lower()
    MIN_TEXT_LAYER_CHARS = _env_int("MIN_TEXT_LAYER_CHARS", 20)
    MAX_CONTENT_CHARS = _env_int("MAX_CONTENT_CHARS", 10000)
    RASTER_DPI = _env_int("RASTER_DPI", 200)

    # Groq (OpenAI-compatible chat completions)
    GROQ_API_KEY = os.environ.get("GROQ_API_KEY", "")
    GROQ_BASE_URL = os.environ.get("GROQ_BASE_URL", "https://api.groq.com/openai/v1")
    GROQ_MODEL = os.environ.get("GROQ_MODEL", "llama3-70b-8192")
    GROQ_VISION_MODEL = os.environ.get("GROQ_VISION_MODEL", "meta-llama/llama-4-scout-17b-16e-instruct")
    COMPLETION_MAX_TOKENS = _env_int("COMPLETION_MAX_TOKENS", 2048)
    SYSTEM_PROMPT = os.environ.get("SYSTEM_PROMPT", "You are a helpful assistant.")

    # LlamaParse
    LLAMA_CLOUD_API_KEY = os.environ.get("LLAMA_CLOUD_API_KEY", "")
    LLAMA_CLOUD_BASE_URL = os.environ.get("LLAMA_CLOUD_BASE_URL", "https://api.cloud.llamaindex.ai/api/v1/parsing")
    POLL_INTERVAL_SECONDS = _env_float("POLL_INTERVAL_SECONDS", 5.0)
    POLL_MAX_ATTEMPTS = _env_int("POLL_MAX_ATTEMPTS", 60)

    UPSTREAM_TIMEOUT_SECONDS = _env_float("UPSTREAM_TIMEOUT_SECONDS", 60.0)

    # Auth
    API_AUTH_TOKEN = os.environ.get("API_AUTH_TOKEN", "")

    # Hide unexpected error details from callers
    VERBOSE_ERRORS = True


class DevelopmentConfig(Config):
    """Development configuration"""
    DEBUG = True
    TESTING = False


class ProductionConfig(Config):
    """Production configuration with Parameter Store fallback for secrets"""
    DEBUG = False
    TESTING = False
    VERBOSE_ERRORS = False

    def __init__(self):
        self.SECRET_KEY = get_parameter("secret-key", Config.SECRET_KEY)
        self.GROQ_API_KEY = get_parameter("groq-api-key", Config.GROQ_API_KEY)
        self.LLAMA_CLOUD_API_KEY = get_parameter("llama-cloud-api-key", Config.LLAMA_CLOUD_API_KEY)
        self.API_AUTH_TOKEN = get_parameter("api-auth-token", Config.API_AUTH_TOKEN)


class TestingConfig(Config):
    """Testing configuration"""
    DEBUG = True
    TESTING = True
    GROQ_API_KEY = "test-groq-key"
    LLAMA_CLOUD_API_KEY = "test-llama-key"
    API_AUTH_TOKEN = "test-token"
    PDF_STRATEGY = "local"
    OCR_MODE = "vision"
    POLL_INTERVAL_SECONDS = 0.0


config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}


def get_config(env: Optional[str] = None) -> Config:
    """Get configuration instance for environment"""
    env = env or environment_name()
    return config.get(env, config['default'])()
