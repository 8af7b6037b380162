"""Intro/outro music resolution: remote URL or local file.

There is no silent fallback. If an episode asks for an intro and the
asset cannot be read, mixing fails.
"""

import logging
import os

import httpx
import numpy as np

from podcast_mixer.decoder import decode
from podcast_mixer.errors import FetchError
from podcast_mixer.settings import MixConfig

logger = logging.getLogger(__name__)


def is_url(source: str) -> bool:
    return source.startswith(("http://", "https://"))


def fetch_asset(source: str, config: MixConfig) -> bytes:
    """Read an intro/outro asset from a URL (with timeout, no retry) or a path."""
    if is_url(source):
        logger.info("Fetching %s", source)
        try:
            r = httpx.get(source, timeout=config.fetch_timeout, follow_redirects=True)
            r.raise_for_status()
        except httpx.HTTPError as e:
            raise FetchError(f"Could not fetch {source}: {e}") from e
        data = r.content
    else:
        if not os.path.exists(source):
            raise FetchError(f"Asset file not found: {source}")
        try:
            with open(source, "rb") as f:
                data = f.read()
        except OSError as e:
            raise FetchError(f"Could not read {source}: {e}") from e

    if not data:
        raise FetchError(f"Asset is empty: {source}")
    logger.info("Loaded %s: %d bytes", source, len(data))
    return data


def load_music(source: str, config: MixConfig) -> np.ndarray:
    """Fetch and decode an intro/outro asset to mixing PCM."""
    pcm = decode(fetch_asset(source, config), config)
    logger.info(
        "Music %s: %.1fs, peak %.3f",
        os.path.basename(source), pcm.shape[1] / config.sample_rate, float(np.max(np.abs(pcm))) if pcm.size else 0.0,
    )
    return pcm
