"""URL utilities for spam detection.

Provides functions for extracting, normalizing, and analyzing URLs for spam
pattern detection, plus the timestamp dispersion statistics used to tell a
coordinated burst from organic link sharing.
"""

from __future__ import annotations

import ipaddress
import math
import re
from collections.abc import Iterable, Sequence
from urllib.parse import parse_qsl, urlencode, urlsplit

# Common tracking parameters removed during normalization.
TRACKING_PARAMS = frozenset(
    {
        "utm_source",
        "utm_medium",
        "utm_campaign",
        "utm_term",
        "utm_content",
        "fbclid",
        "gclid",
        "ref",
        "source",
    }
)

# Popular platforms where URL paths naturally vary (different tweets, videos, ...).
# Exact URL matching still applies; only prefix similarity is skipped.
SIMILARITY_ALLOWLISTED_DOMAINS = frozenset(
    {
        # Social media
        "x.com",
        "twitter.com",
        "youtube.com",
        "youtu.be",
        "reddit.com",
        "old.reddit.com",
        "facebook.com",
        "fb.com",
        "instagram.com",
        "tiktok.com",
        "linkedin.com",
        # Developer platforms
        "github.com",
        "gitlab.com",
        "stackoverflow.com",
        "stackexchange.com",
        # News/content platforms
        "medium.com",
        "substack.com",
        "mirror.xyz",
        # Block explorers
        "etherscan.io",
        "arbiscan.io",
        "basescan.org",
        "polygonscan.com",
        "optimistic.etherscan.io",
        "bscscan.com",
        "snowtrace.io",
        "ftmscan.com",
        "solscan.io",
        "explorer.solana.com",
        # Other common platforms
        "docs.google.com",
        "drive.google.com",
        "notion.so",
        "discord.com",
        "discord.gg",
        "t.me",
        "telegram.me",
    }
)

URL_SHORTENER_DOMAINS = frozenset(
    {
        "bit.ly",
        "tinyurl.com",
        "t.co",
        "goo.gl",
        "ow.ly",
        "is.gd",
        "buff.ly",
        "adf.ly",
        "bl.ink",
        "lnkd.in",
        "rebrand.ly",
        "cutt.ly",
        "shorturl.at",
        "rb.gy",
        "tiny.cc",
    }
)

_URL_PATTERN = re.compile(r"https?://[^\s<>\"'`\[\]{}|\\^]+", re.IGNORECASE)
_TRAILING_PUNCTUATION = re.compile(r"[.,;:!?)]+$")
_TRAILING_PUNCTUATION_NO_PAREN = re.compile(r"[.,;:!]+$")
_DEFAULT_PORTS = {80, 443}

SECONDS_PER_HOUR = 3600


def _split(url: str):
    """Parse an absolute http(s) URL, returning None when it is not one."""
    try:
        parsed = urlsplit(url.strip())
        port = parsed.port
    except ValueError:
        return None, None
    if parsed.scheme.lower() not in ("http", "https") or not parsed.hostname:
        return None, None
    return parsed, port


def _host(hostname: str) -> str:
    host = hostname.lower()
    return host[4:] if host.startswith("www.") else host


def extract_domain(url: str) -> str | None:
    """Return the lowercase host of a URL without a ``www.`` prefix."""
    parsed, _ = _split(url)
    if parsed is None:
        return None
    return _host(parsed.hostname)


def normalize_url(url: str) -> str | None:
    """Normalize a URL for comparison purposes.

    Lowercases everything, strips ``www.``, drops tracking parameters and
    default ports, removes trailing slashes, and sorts the remaining query
    parameters. Returns None for anything that is not an absolute http(s) URL.
    """
    parsed, port = _split(url)
    if parsed is None:
        return None

    normalized = f"{parsed.scheme.lower()}://{_host(parsed.hostname)}"
    if port is not None and port not in _DEFAULT_PORTS:
        normalized += f":{port}"
    normalized += parsed.path.rstrip("/") or "/"

    params = sorted(
        (key, value)
        for key, value in parse_qsl(parsed.query, keep_blank_values=True)
        if key not in TRACKING_PARAMS
    )
    if params:
        normalized += f"?{urlencode(params)}"
    if parsed.fragment:
        normalized += f"#{parsed.fragment}"

    return normalized.lower()


def extract_url_prefix(url: str) -> str | None:
    """Return ``host[:port]/seg1/seg2`` (first two path segments) for grouping.

    The query string never contributes, so referral-parameter rotation on the
    same path collapses onto one prefix.
    """
    parsed, port = _split(url)
    if parsed is None:
        return None

    host = _host(parsed.hostname)
    if port is not None and port not in _DEFAULT_PORTS:
        host += f":{port}"

    segments = [segment for segment in parsed.path.split("/") if segment][:2]
    if not segments:
        return host
    return f"{host}/{'/'.join(segments)}"


def is_ip_address_url(url: str) -> bool:
    """Return True when the URL points at a literal IP address instead of a domain."""
    domain = extract_domain(url)
    if not domain:
        return False
    try:
        ipaddress.ip_address(domain.strip("[]"))
    except ValueError:
        return False
    return True


def is_similarity_allowlisted_domain(domain: str) -> bool:
    if not domain:
        return False
    return _host(domain) in SIMILARITY_ALLOWLISTED_DOMAINS


def is_url_similarity_allowlisted(url: str) -> bool:
    domain = extract_domain(url)
    return domain is not None and is_similarity_allowlisted_domain(domain)


def is_url_shortener(url: str) -> bool:
    domain = extract_domain(url)
    return domain is not None and domain in URL_SHORTENER_DOMAINS


def count_query_params(url: str) -> int:
    parsed, _ = _split(url)
    if parsed is None:
        return 0
    return len(parse_qsl(parsed.query, keep_blank_values=True))


def _strip_trailing_punctuation(url: str) -> str:
    if not _TRAILING_PUNCTUATION.search(url):
        return url
    if "?" not in url and "#" not in url:
        return _TRAILING_PUNCTUATION.sub("", url)

    cleaned = _TRAILING_PUNCTUATION_NO_PAREN.sub("", url)
    # Only drop closing parens that are unbalanced.
    while cleaned.endswith(")") and cleaned.count(")") > cleaned.count("("):
        cleaned = cleaned[:-1]
    return cleaned


def extract_urls_from_text(text: str | None) -> list[str]:
    """Return every http(s) URL found in free text, trailing punctuation removed."""
    if not text or not isinstance(text, str):
        return []
    return [_strip_trailing_punctuation(match) for match in _URL_PATTERN.findall(text)]


def collect_all_urls(
    link: str | None = None, content: str | None = None, title: str | None = None
) -> list[str]:
    """Collect normalized, deduplicated URLs from a comment's link, content and title."""
    candidates: list[str] = []
    if link:
        candidates.append(link)
    candidates.extend(extract_urls_from_text(content))
    candidates.extend(extract_urls_from_text(title))

    urls: dict[str, None] = {}
    for candidate in candidates:
        normalized = normalize_url(candidate)
        if normalized:
            urls[normalized] = None
    return list(urls)


def collect_url_prefixes_for_similarity(
    link: str | None = None, content: str | None = None, title: str | None = None
) -> list[str]:
    """Collect deduplicated URL prefixes, skipping similarity-allowlisted domains."""
    prefixes: dict[str, None] = {}
    for url in collect_all_urls(link=link, content=content, title=title):
        if is_url_similarity_allowlisted(url):
            continue
        prefix = extract_url_prefix(url)
        if prefix:
            prefixes[prefix] = None
    return list(prefixes)


def calculate_timestamp_stddev(timestamps: Sequence[float] | Iterable[float]) -> float | None:
    """Return the population standard deviation of timestamps in seconds.

    Returns None when fewer than two timestamps are supplied.
    """
    values = list(timestamps)
    if len(values) < 2:
        return None
    mean = sum(values) / len(values)
    variance = sum((value - mean) ** 2 for value in values) / len(values)
    return math.sqrt(variance)


def get_time_clustering_risk(stddev: float | None, count: int) -> tuple[float, str]:
    """Translate timestamp dispersion into additional risk.

    Args:
        stddev: Standard deviation of the matching posts' timestamps in seconds.
        count: Number of matching posts.

    Returns:
        Tuple of (risk bonus, human readable description).
    """
    if stddev is None or count < 3:
        return 0.0, ""
    if stddev < SECONDS_PER_HOUR:
        return 0.3, "tightly clustered in time"
    if stddev < 3 * SECONDS_PER_HOUR:
        return 0.2, "clustered in time"
    if stddev < 6 * SECONDS_PER_HOUR:
        return 0.1, "loosely clustered in time"
    return 0.0, "spread over time"
