from typing import Dict, Mapping, Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

UTM_KEYS = ("utm_source", "utm_medium", "utm_campaign", "utm_term", "utm_content")


def is_valid_url(url: Optional[str]) -> bool:
    """True for absolute http/https URLs with a host."""
    if not isinstance(url, str) or not url or any(ch.isspace() for ch in url):
        return False
    try:
        parts = urlsplit(url)
    except ValueError:
        return False
    return parts.scheme in ("http", "https") and bool(parts.hostname)


def _non_empty(utm_params: Optional[Mapping[str, Optional[str]]]) -> Dict[str, str]:
    if not utm_params:
        return {}
    return {key: utm_params[key] for key in UTM_KEYS if utm_params.get(key)}


def merge_utm_params(url: str, utm_params: Optional[Mapping[str, Optional[str]]]) -> str:
    """
    Return ``url`` with every non-empty UTM parameter set in its query string.

    Existing same-named keys are overwritten in place (later duplicates are
    dropped), other query pairs are kept as they were. With nothing to merge
    the input is returned untouched.
    """
    params = _non_empty(utm_params)
    if not params:
        return url

    if not is_valid_url(url):
        raise ValueError(f"Cannot merge UTM parameters into invalid URL: {url!r}")

    parts = urlsplit(url)
    pairs = []
    seen = set()
    for key, value in parse_qsl(parts.query, keep_blank_values=True):
        if key in params:
            if key in seen:
                continue
            seen.add(key)
            value = params[key]
        pairs.append((key, value))

    for key in UTM_KEYS:
        if key in params and key not in seen:
            pairs.append((key, params[key]))

    return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(pairs), parts.fragment))


def extract_utm_params(url: str) -> Dict[str, str]:
    query = dict(parse_qsl(urlsplit(url).query, keep_blank_values=True))
    return {key: query[key] for key in UTM_KEYS if query.get(key)}
