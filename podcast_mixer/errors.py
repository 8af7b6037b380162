"""Exceptions raised by the mixing engine.

Every error carries the pipeline phase it came from (fetch, decode,
analyze, mix, encode) and, where it applies, the index of the script
segment being processed. None of them are recoverable inside the engine.
"""


class MixError(Exception):
    """Base class for all engine failures."""

    phase = "mix"

    def __init__(self, message: str, segment_index: int | None = None):
        super().__init__(message)
        self.message = message
        self.segment_index = segment_index

    def __str__(self) -> str:
        where = f" (segment {self.segment_index})" if self.segment_index is not None else ""
        return f"[{self.phase}]{where} {self.message}"


class DecodeError(MixError):
    """Malformed container, unsupported bit depth or sample format."""

    phase = "decode"


class FetchError(MixError):
    """Intro/outro asset could not be retrieved."""

    phase = "fetch"


class EncodeError(MixError):
    """The encoder produced output that violates an MP3 invariant."""

    phase = "encode"
