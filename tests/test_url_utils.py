import sys
from pathlib import Path

import pytest

project_root = Path(__file__).resolve().parents[1]
if str(project_root) not in sys.path:
    sys.path.append(str(project_root))

from modules.utils.url_utils import ensure_scheme, extract_host, extract_urls, normalize_host_entry


def test_ensure_scheme():
    assert ensure_scheme("example.com") == "http://example.com"
    assert ensure_scheme("https://example.com") == "https://example.com"


@pytest.mark.parametrize(
    "url,expected",
    [
        ("https://WWW.GitHub.com/org/repo", "github.com"),
        ("bit.ly/abc", "bit.ly"),
        ("http://evil.example.com:8080/x", "evil.example.com"),
        ("", None),
    ],
)
def test_extract_host(url, expected):
    assert extract_host(url) == expected


def test_normalize_host_entry():
    assert normalize_host_entry("https://www.youtube.com/watch") == "youtube.com"
    assert normalize_host_entry("Twitch.TV") == "twitch.tv"


def test_extract_urls_needs_a_real_tld():
    assert extract_urls("visit evil-site.com now") == ["evil-site.com"]
    assert extract_urls("i use node.js and config.yaml") == []
    assert extract_urls(None) == []
