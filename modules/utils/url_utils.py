from __future__ import annotations

import re
from typing import List, Optional
from urllib.parse import urlparse

from urlextract import URLExtract

_EXTRACTOR = URLExtract()
_SCHEME_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*://")


def ensure_scheme(u: str) -> str:
    """Prepend http:// if no scheme is present."""

    if not _SCHEME_RE.match(u):
        return f"http://{u}"
    return u


def norm_host(host: str) -> str:
    """Lower-case *host* and drop a leading ``www.``."""
    host = (host or "").strip().lower().rstrip(".")
    if host.startswith("www."):
        host = host[4:]
    return host


def extract_host(u: str) -> Optional[str]:
    """Return the normalised hostname of *u*, or None when there is none."""
    try:
        host = urlparse(ensure_scheme(u.strip())).hostname
    except ValueError:
        return None
    if not host:
        return None
    return norm_host(host) or None


def normalize_host_entry(entry: str) -> str:
    """Reduce a whitelist entry such as ``https://www.github.com/x`` to ``github.com``."""
    host = extract_host(entry)
    return host if host else norm_host(entry)


def extract_urls(text: str) -> List[str]:
    """Return links in *text*, with or without a scheme, whose host ends in a real TLD."""
    return _EXTRACTOR.find_urls(text or "")
