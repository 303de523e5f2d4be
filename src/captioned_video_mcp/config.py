"""Configuration via environment variables."""

from enum import Enum
from pydantic_settings import BaseSettings


class Transport(str, Enum):
    STDIO = "stdio"
    STREAMABLE_HTTP = "streamable-http"


class Settings(BaseSettings):
    model_config = {"env_prefix": "CAPTION_MCP_"}

    # Transcription service
    transcription_url: str = "https://api.assemblyai.com"
    transcription_api_key: str = ""

    # Render worker
    render_url: str = "http://localhost:3000"
    render_api_key: str = ""
    render_timeout_seconds: float = 600.0

    # Object storage
    s3_bucket: str = ""
    s3_region: str = "us-east-1"
    s3_endpoint_url: str | None = None
    aws_access_key_id: str = ""
    aws_secret_access_key: str = ""

    # Transcription polling budget
    poll_max_attempts: int = 40
    poll_max_seconds: float = 600.0
    poll_initial_delay: float = 1.0
    poll_max_delay: float = 30.0
    poll_request_timeout: float = 30.0

    max_words_per_caption: int = 8

    # Presigned URL lifetimes (seconds)
    transcribe_url_ttl: int = 3600
    render_input_url_ttl: int = 7200
    output_url_ttl: int = 86400
    preview_url_ttl: int = 3600

    cache_max_size: int = 100
    cache_ttl_seconds: int = 3600
    rate_limit_per_minute: int = 30
    transport: Transport = Transport.STDIO
