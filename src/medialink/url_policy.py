"""Protocol and domain policy for link destinations."""

import re
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlsplit, urlunsplit
from loguru import logger

from medialink.config import UrlPolicySettings

SCHEME_PATTERN = re.compile(r'^[a-zA-Z][a-zA-Z0-9+.\-]*$')
# Schemes that must carry a host to be a usable destination
HIERARCHICAL_SCHEMES = {'http', 'https', 'ftp', 'ws', 'wss'}


class MalformedUrlError(ValueError):
    """Raised when a candidate URL cannot be parsed."""


@dataclass(frozen=True)
class UrlVerdict:
    """Outcome of a destination check."""
    url: Optional[str] = None       # Normalized URL when accepted
    reason: Optional[str] = None    # Field-level message when rejected

    @property
    def accepted(self) -> bool:
        return self.url is not None


@dataclass(frozen=True)
class ParsedUrl:
    scheme: str
    host: str
    normalized: str


def parse_url(raw: str, default_protocol: str) -> ParsedUrl:
    """Parse a candidate URL, prefixing the default protocol when it has no ':'."""
    candidate = raw.strip()
    if not candidate:
        raise MalformedUrlError("empty URL")
    if ':' not in candidate:
        candidate = f"{default_protocol}://{candidate}"

    parts = urlsplit(candidate)
    if not parts.scheme or not SCHEME_PATTERN.match(parts.scheme):
        raise MalformedUrlError(f"no valid scheme in {raw!r}")

    scheme = parts.scheme.lower()
    host = (parts.hostname or '').lower()
    if scheme in HIERARCHICAL_SCHEMES and not host:
        raise MalformedUrlError(f"missing host in {raw!r}")
    if any(ch.isspace() for ch in parts.netloc):
        raise MalformedUrlError(f"whitespace in host of {raw!r}")
    # Accessing .port validates it and raises ValueError when out of range
    _ = parts.port

    normalized = urlunsplit((scheme, parts.netloc, parts.path, parts.query, parts.fragment))
    return ParsedUrl(scheme=scheme, host=host, normalized=normalized)


class UrlPolicy:
    """Validate link destinations and decide on auto-linking."""

    def __init__(self, settings: UrlPolicySettings = None):
        self.settings = settings or UrlPolicySettings()
        self.allowed_protocols = {p.lower() for p in self.settings.allowed_protocols}
        self.disallowed_protocols = {p.lower() for p in self.settings.disallowed_protocols}
        self.disallowed_domains = {d.lower() for d in self.settings.disallowed_domains}
        self.no_autolink_domains = {d.lower() for d in self.settings.no_autolink_domains}
        logger.debug("UrlPolicy initialized: allowed={}, default={}",
                     sorted(self.allowed_protocols), self.settings.default_protocol)

    def check(self, raw_url: str, default_protocol: Optional[str] = None) -> UrlVerdict:
        """Check a destination, returning the normalized URL or the reason it was rejected."""
        protocol = default_protocol or self.settings.default_protocol
        try:
            parsed = parse_url(raw_url, protocol)
        except Exception as e:
            logger.debug("Rejected unparsable URL {!r}: {}", raw_url, e)
            return UrlVerdict(reason="Please enter a valid URL (e.g., https://example.com)")

        if parsed.scheme in self.disallowed_protocols:
            logger.debug("Rejected disallowed protocol: {}", parsed.scheme)
            return UrlVerdict(reason=f"Links using '{parsed.scheme}' are not allowed")

        if parsed.scheme not in self.allowed_protocols:
            logger.debug("Rejected protocol not in allowed set: {}", parsed.scheme)
            return UrlVerdict(reason=f"Links using '{parsed.scheme}' are not allowed")

        if parsed.host in self.disallowed_domains:
            logger.warning("Rejected denylisted domain: {}", parsed.host)
            return UrlVerdict(reason=f"Links to {parsed.host} are not allowed")

        return UrlVerdict(url=parsed.normalized)

    def validate_destination(self, raw_url: str, default_protocol: Optional[str] = None) -> Optional[str]:
        """Normalized URL, or None when the destination is rejected."""
        return self.check(raw_url, default_protocol).url

    def should_auto_link(self, raw_url: str) -> bool:
        """Whether a bare URL typed inline may be linked automatically."""
        try:
            parsed = parse_url(raw_url, "https")
        except Exception as e:
            logger.debug("Not auto-linking {!r}: {}", raw_url, e)
            return False
        return parsed.host not in self.no_autolink_domains
