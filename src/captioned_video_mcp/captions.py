"""Caption segmentation and SubRip (.srt) encoding."""

import re
from collections.abc import Iterable, Sequence

from captioned_video_mcp.errors import ValidationError
from captioned_video_mcp.models import Caption, Word
from captioned_video_mcp.utils import format_timecode, parse_timecode

DEFAULT_MAX_WORDS_PER_CAPTION = 8

_BLOCK_SPLIT_RE = re.compile(r"\n\s*\n")


def validate_words(words: Iterable[Word]) -> None:
    for i, word in enumerate(words):
        if word.start_ms < 0 or word.end_ms < 0:
            raise ValidationError(f"Word {i} has a negative timestamp")
        if word.end_ms < word.start_ms:
            raise ValidationError(f"Word {i} ends before it starts")
        if not word.text.strip():
            raise ValidationError(f"Word {i} has no text")


def validate_captions(captions: Iterable[Caption]) -> None:
    for i, caption in enumerate(captions, start=1):
        if caption.start < 0 or caption.end < 0:
            raise ValidationError(f"Caption {i} has a negative timestamp")
        if caption.end < caption.start:
            raise ValidationError(f"Caption {i} ends before it starts")
        if not caption.text.strip():
            raise ValidationError(f"Caption {i} has no text")


def segment(
    words: Sequence[Word],
    max_words_per_caption: int = DEFAULT_MAX_WORDS_PER_CAPTION,
) -> list[Caption]:
    """Group word timings into captions of at most ``max_words_per_caption`` words.

    A caption starts at its first word's start and ends at its last word's
    end. Degenerate word timings (start == end) are kept as-is.
    """
    if max_words_per_caption < 1:
        raise ValidationError("max_words_per_caption must be a positive integer")
    validate_words(words)

    captions: list[Caption] = []
    buffer: list[Word] = []

    def flush() -> None:
        captions.append(
            Caption(
                start=buffer[0].start_ms / 1000,
                end=buffer[-1].end_ms / 1000,
                text=" ".join(w.text for w in buffer),
            )
        )
        buffer.clear()

    for word in words:
        buffer.append(word)
        if len(buffer) >= max_words_per_caption:
            flush()
    if buffer:
        flush()
    return captions


def encode_srt(captions: Sequence[Caption]) -> str:
    """Render captions as SubRip text. Output is byte-for-byte deterministic."""
    validate_captions(captions)
    blocks = []
    for i, caption in enumerate(captions, start=1):
        blocks.append(
            f"{i}\n"
            f"{format_timecode(caption.start)} --> {format_timecode(caption.end)}\n"
            f"{caption.text}\n\n"
        )
    return "".join(blocks)


def decode_srt(text: str) -> list[Caption]:
    """Parse SubRip text back into captions.

    Accepts CRLF line endings and a missing trailing blank line. Cue text
    spanning several lines is joined with newlines.
    """
    normalized = text.replace("\r\n", "\n").replace("\r", "\n").strip()
    if not normalized:
        return []

    captions = []
    for block in _BLOCK_SPLIT_RE.split(normalized):
        lines = block.strip("\n").split("\n")
        if len(lines) < 3 or not lines[0].strip().isdigit():
            raise ValidationError(f"Malformed subtitle block: {block!r}")
        start_raw, sep, end_raw = lines[1].partition("-->")
        if not sep:
            raise ValidationError(f"Malformed timing line: {lines[1]!r}")
        captions.append(
            Caption(
                start=parse_timecode(start_raw),
                end=parse_timecode(end_raw),
                text="\n".join(lines[2:]),
            )
        )
    validate_captions(captions)
    return captions
