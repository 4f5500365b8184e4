"""YouTube embed validation for the video dialog."""

import re
from dataclasses import dataclass
from loguru import logger

YOUTUBE_PATTERN = re.compile(
    r'^(https?://)?(www\.)?(youtube\.com|youtu\.be)/(watch\?v=)?([A-Za-z0-9_-]{11})')

MIN_WIDTH, MIN_HEIGHT = 320, 180
DEFAULT_WIDTH, DEFAULT_HEIGHT = 640, 480


class EmbedError(ValueError):
    """Video URL rejected; the message is shown next to the field."""


@dataclass(frozen=True)
class VideoEmbed:
    src: str
    video_id: str
    width: int = DEFAULT_WIDTH
    height: int = DEFAULT_HEIGHT

    @property
    def embed_url(self) -> str:
        # Privacy-enhanced host, no player controls
        return f"https://www.youtube-nocookie.com/embed/{self.video_id}?controls=0"

    def to_html(self) -> str:
        return (f'<div data-youtube-video=""><iframe src="{self.embed_url}" '
                f'width="{self.width}" height="{self.height}" allowfullscreen="true"></iframe></div>')


def parse_video_embed(url: str, width="", height="") -> VideoEmbed:
    """Validate a YouTube URL and clamp the requested player size."""
    url = (url or "").strip()
    match = YOUTUBE_PATTERN.match(url)
    if not match:
        logger.warning("Rejected video URL: {}", url)
        raise EmbedError("Please enter a valid YouTube URL (e.g., https://www.youtube.com/watch?v=VIDEO_ID)")

    embed = VideoEmbed(
        src=url,
        video_id=match.group(5),
        width=_dimension(width, MIN_WIDTH, DEFAULT_WIDTH),
        height=_dimension(height, MIN_HEIGHT, DEFAULT_HEIGHT)
    )
    logger.debug("Video embed: id={}, {}x{}", embed.video_id, embed.width, embed.height)
    return embed


def _dimension(value, minimum: int, default: int) -> int:
    try:
        return max(minimum, int(value))
    except (TypeError, ValueError):
        return default
