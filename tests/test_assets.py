"""Tests for intro/outro asset loading (Layer 2)."""

from unittest.mock import patch

import httpx
import pytest

from podcast_mixer.assets import fetch_asset, is_url, load_music
from podcast_mixer.errors import FetchError
from podcast_mixer.settings import MixConfig, MixingSettings


def _response(content=b"data", status=200):
    request = httpx.Request("GET", "http://assets.test/a.mp3")
    return httpx.Response(status, content=content, request=request)


def test_is_url():
    assert is_url("https://cdn.example.com/intro.mp3")
    assert not is_url("/srv/audio/intro.mp3")


@patch("podcast_mixer.assets.httpx.get")
def test_fetch_url_uses_timeout(mock_get, config):
    mock_get.return_value = _response(b"mp3-bytes")
    assert fetch_asset("http://assets.test/a.mp3", config) == b"mp3-bytes"
    assert mock_get.call_args.kwargs["timeout"] == config.fetch_timeout


@patch("podcast_mixer.assets.httpx.get")
def test_fetch_http_error(mock_get, config):
    mock_get.return_value = _response(b"not found", status=404)
    with pytest.raises(FetchError, match="Could not fetch"):
        fetch_asset("http://assets.test/a.mp3", config)


@patch("podcast_mixer.assets.httpx.get")
def test_fetch_timeout_is_fatal(mock_get, config):
    mock_get.side_effect = httpx.ReadTimeout("timed out")
    with pytest.raises(FetchError) as exc:
        fetch_asset("http://assets.test/a.mp3", config)
    assert exc.value.phase == "fetch"
    assert mock_get.call_count == 1


@patch("podcast_mixer.assets.httpx.get")
def test_fetch_empty_body(mock_get, config):
    mock_get.return_value = _response(b"")
    with pytest.raises(FetchError, match="empty"):
        fetch_asset("http://assets.test/a.mp3", config)


def test_fetch_local_file(tmp_path, config):
    path = tmp_path / "intro.mp3"
    path.write_bytes(b"abc")
    assert fetch_asset(str(path), config) == b"abc"


def test_fetch_missing_local_file(tmp_path, config):
    with pytest.raises(FetchError, match="not found"):
        fetch_asset(str(tmp_path / "missing.mp3"), config)


def test_load_music_decodes(music_file, config):
    pcm = load_music(music_file, config)
    assert pcm.shape[0] == 2
    assert abs(pcm.shape[1] / 44100 - 20.0) < 0.1


def test_default_urls_follow_base_url(monkeypatch):
    monkeypatch.setenv("PODCAST_ASSET_BASE_URL", "https://cdn.test")
    config = MixConfig()
    s = MixingSettings()
    assert s.resolved_intro_url(config) == "https://cdn.test/audio/podcast-intro.mp3"
    assert s.resolved_outro_url(config) == "https://cdn.test/audio/podcast-outro.mp3"
    assert MixingSettings(intro_url="/x.mp3").resolved_intro_url(config) == "/x.mp3"
