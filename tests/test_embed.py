"""
Tests for YouTube embed validation.
"""

from __future__ import annotations

import pytest

from medialink.embed import EmbedError, parse_video_embed


@pytest.mark.parametrize("url", [
    "https://www.youtube.com/watch?v=dQw4w9WgXcQ",
    "http://youtube.com/watch?v=dQw4w9WgXcQ&t=42",
    "youtu.be/dQw4w9WgXcQ",
    "  https://youtu.be/dQw4w9WgXcQ  ",
])
def test_accepted_urls_yield_video_id(url):
    assert parse_video_embed(url).video_id == "dQw4w9WgXcQ"


@pytest.mark.parametrize("url", [
    "",
    "https://vimeo.com/123456",
    "https://www.youtube.com/watch?v=short",
    "https://example.com/?v=dQw4w9WgXcQ",
])
def test_other_urls_rejected(url):
    with pytest.raises(EmbedError, match="valid YouTube URL"):
        parse_video_embed(url)


@pytest.mark.parametrize("width, height, expected", [
    ("", "", (640, 480)),
    ("100", "50", (320, 180)),
    (1280, "720", (1280, 720)),
    ("wide", None, (640, 480)),
])
def test_dimensions_are_clamped(width, height, expected):
    embed = parse_video_embed("https://youtu.be/dQw4w9WgXcQ", width, height)
    assert (embed.width, embed.height) == expected


def test_embed_html_uses_privacy_host():
    html = parse_video_embed("https://youtu.be/dQw4w9WgXcQ", 320, 180).to_html()

    assert 'src="https://www.youtube-nocookie.com/embed/dQw4w9WgXcQ?controls=0"' in html
    assert 'width="320" height="180"' in html
