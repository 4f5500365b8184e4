"""
Tests for link destination policy and auto-link decisions.
"""

from __future__ import annotations

import pytest

from medialink.config import UrlPolicySettings
from medialink.url_policy import MalformedUrlError, UrlPolicy, parse_url


@pytest.fixture
def policy():
    return UrlPolicy()


def test_bare_host_gets_default_protocol(policy):
    assert policy.validate_destination("example.com", "https") == "https://example.com"


def test_default_protocol_comes_from_settings():
    policy = UrlPolicy(UrlPolicySettings(default_protocol="http"))
    assert policy.validate_destination("example.com") == "http://example.com"


def test_absolute_url_is_kept(policy):
    assert policy.validate_destination("https://example.com/a?b=c#d") == "https://example.com/a?b=c#d"


def test_scheme_is_lowercased(policy):
    assert policy.validate_destination("HTTPS://example.com/Path") == "https://example.com/Path"


@pytest.mark.parametrize("url", [
    "javascript:alert(1)",
    "ftp://host/x",
    "file:///etc/passwd",
    "mailto:someone@example.com",
    "data:text/html,<b>hi</b>",
])
def test_unsafe_protocols_rejected(policy, url):
    assert policy.validate_destination(url) is None


def test_ftp_rejected_even_when_allowed():
    policy = UrlPolicy(UrlPolicySettings(allowed_protocols=["http", "https", "ftp"]))
    assert policy.validate_destination("ftp://host/x") is None


@pytest.mark.parametrize("url", [
    "example-phishing.com",
    "https://malicious-site.net/login",
    "https://MALICIOUS-SITE.NET",
])
def test_denylisted_domains_rejected(policy, url):
    verdict = policy.check(url)
    assert not verdict.accepted
    assert "not allowed" in verdict.reason


@pytest.mark.parametrize("url", ["", "   ", "http://", "https://[::1", "exa mple.com"])
def test_malformed_urls_rejected_without_raising(policy, url):
    verdict = policy.check(url)
    assert verdict.url is None
    assert verdict.reason.startswith("Please enter a valid URL")


def test_parse_url_raises_for_missing_host():
    with pytest.raises(MalformedUrlError):
        parse_url("https://", "https")


def test_autolink_denylist_is_separate(policy):
    assert policy.should_auto_link("docs.python.org")
    assert policy.should_auto_link("https://example.com/page")
    assert not policy.should_auto_link("example-no-autolink.com/page")
    assert not policy.should_auto_link("https://another-no-autolink.com")


def test_autolink_does_not_apply_destination_denylist(policy):
    # Explicit attachment still runs validate_destination
    assert policy.should_auto_link("malicious-site.net")
    assert policy.validate_destination("malicious-site.net") is None


def test_autolink_rejects_unparsable(policy):
    assert not policy.should_auto_link("https://[::1")
    assert not policy.should_auto_link("")
