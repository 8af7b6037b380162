"""Parse a two-speaker podcast script into lines."""

import re

from podcast_mixer.analyzer import EMOTION_TAGS, has_overlapping_marker, strip_emotion_tags
from podcast_mixer.constants import SPEAKERS, WORDS_PER_MINUTE
from podcast_mixer.models import ScriptLine

# HOST: text / guest: text
_LINE_RE = re.compile(r"^\s*(" + "|".join(SPEAKERS) + r")\s*:\s*(.*)$", re.IGNORECASE)

# Any bracketed word, known tag or not
_TAG_RE = re.compile(r"\[([^\]]+)\]")


def parse_script_text(raw: str) -> list[ScriptLine]:
    """Read "SPEAKER: text" lines; anything else (headings, blanks) is skipped.

    A "(overlapping)" marker anywhere in the text flags the line as talking
    over the previous one. The text itself is kept as written, tags included.
    """
    lines = []
    for raw_line in raw.splitlines():
        match = _LINE_RE.match(raw_line)
        if not match:
            continue
        text = match.group(2).strip()
        if not strip_emotion_tags(text):
            continue
        lines.append(ScriptLine(
            speaker=match.group(1).upper(),
            text=text,
            overlapping=has_overlapping_marker(text),
        ))
    return lines


def estimate_duration(lines: list[ScriptLine]) -> float:
    """Rough spoken length in seconds at a conversational pace."""
    words = sum(len(strip_emotion_tags(line.text).split()) for line in lines)
    return words / WORDS_PER_MINUTE * 60


def validate_emotion_tags(lines: list[ScriptLine]) -> list[str]:
    """Warnings for bracketed tags the voice engine will read out literally."""
    known = set(EMOTION_TAGS)
    warnings = []
    for i, line in enumerate(lines):
        for tag in _TAG_RE.findall(line.text):
            if tag.lower() not in known:
                warnings.append(f"Line {i + 1} ({line.speaker}): unknown tag [{tag}]")
    return warnings
