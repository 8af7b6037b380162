"""Write the mixed episode and its provenance manifest."""

import io
import json
import os
from datetime import datetime, timezone

from pydub import AudioSegment

from podcast_mixer.constants import MANIFEST_FILENAME, VERSION


def mp3_duration_seconds(data: bytes) -> float:
    if not data:
        return 0.0
    return len(AudioSegment.from_file(io.BytesIO(data), format="mp3")) / 1000


def export(
    mp3: bytes,
    output_path: str,
    settings: dict,
    segment_count: int,
    strategy: str,
) -> str:
    """Write the MP3 and an output.json manifest next to it.

    Returns the manifest path.
    """
    out_dir = os.path.dirname(os.path.abspath(output_path))
    os.makedirs(out_dir, exist_ok=True)

    with open(output_path, "wb") as f:
        f.write(mp3)

    manifest = {
        "episode": os.path.basename(output_path),
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "mixer_version": VERSION,
        "strategy": strategy,
        "settings": settings,
        "stats": {
            "segments": segment_count,
            "duration_seconds": round(mp3_duration_seconds(mp3), 1),
            "size_bytes": len(mp3),
        },
    }

    manifest_path = os.path.join(out_dir, MANIFEST_FILENAME)
    with open(manifest_path, "w") as f:
        json.dump(manifest, f, indent=2)

    return manifest_path
