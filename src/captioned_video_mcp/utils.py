"""Utility functions."""

import re
from urllib.parse import unquote, urlparse

from captioned_video_mcp.errors import ValidationError

_TIMECODE_RE = re.compile(r"^(\d+):([0-5]\d):([0-5]\d)[,.](\d{3})$")
_VIRTUAL_HOST_RE = re.compile(r"^(.+)\.s3[.-](?:[a-z0-9-]+\.)?amazonaws\.com$")
_PATH_STYLE_HOST_RE = re.compile(r"^s3[.-](?:[a-z0-9-]+\.)?amazonaws\.com$")


def storage_key_from_reference(reference: str, bucket: str | None = None) -> str | None:
    """Extract an object key from an S3 URL or return a bare key as-is.

    Returns None for http(s) URLs that do not point at S3, which are
    assumed to be accessible already. When ``bucket`` is given, S3 URLs
    naming another bucket also return None.
    """
    reference = reference.strip().replace("\\", "/")
    if not reference:
        return None

    parsed = urlparse(reference)
    url_bucket = None
    key = None
    if parsed.scheme == "s3":
        url_bucket = parsed.netloc
        key = unquote(parsed.path.lstrip("/"))
    elif parsed.scheme in ("http", "https"):
        host = parsed.netloc.lower()
        path = unquote(parsed.path.lstrip("/"))
        # virtual-hosted style: bucket.s3.region.amazonaws.com/key
        match = _VIRTUAL_HOST_RE.match(host)
        if match:
            url_bucket, key = match.group(1), path
        # path style: s3.region.amazonaws.com/bucket/key
        elif _PATH_STYLE_HOST_RE.match(host):
            url_bucket, _, key = path.partition("/")
        else:
            return None

    if url_bucket is not None:
        if bucket and url_bucket != bucket:
            return None
        return key or None
    if parsed.scheme:
        return None
    return reference.lstrip("/")


def format_timecode(seconds: float) -> str:
    """Format seconds as an SRT timecode HH:MM:SS,mmm (hours unbounded)."""
    if seconds < 0:
        raise ValidationError(f"Timecode must be non-negative, got {seconds}")
    total_ms = round(seconds * 1000)
    hours, rem = divmod(total_ms, 3_600_000)
    minutes, rem = divmod(rem, 60_000)
    secs, millis = divmod(rem, 1000)
    return f"{hours:02d}:{minutes:02d}:{secs:02d},{millis:03d}"


def parse_timecode(value: str) -> float:
    """Parse HH:MM:SS,mmm back into seconds."""
    match = _TIMECODE_RE.match(value.strip())
    if not match:
        raise ValidationError(f"Invalid timecode: {value!r}")
    h, m, s, ms = (int(g) for g in match.groups())
    return h * 3600 + m * 60 + s + ms / 1000
