"""
URL canonicalization and resolution helpers.

``normalize_url`` is the only key generator for the visited set and for
per-page/per-region reference deduplication, so its output must be stable:
the same input and ignore list always produce the same string.
"""

from typing import Iterable, Optional
from urllib.parse import unquote_plus, urljoin, urlsplit, urlunsplit


DEFAULT_PORTS = {'http': 80, 'https': 443}
HTTP_SCHEMES = ('http', 'https')


def _strip_fragment(url: str) -> str:
    return url.split('#', 1)[0]


def _filter_query(query: str, ignore_prefixes: Iterable[str]) -> str:
    """Drop query segments whose name starts with an ignored prefix."""
    prefixes = tuple(p.lower() for p in ignore_prefixes if p)
    if not query or not prefixes:
        return query

    kept = []
    for segment in query.split('&'):
        name = unquote_plus(segment.split('=', 1)[0]).lower()
        if name.startswith(prefixes):
            continue
        kept.append(segment)
    return '&'.join(kept)


def _build_netloc(parsed) -> str:
    hostname = parsed.hostname or ''
    if ':' in hostname:
        hostname = f'[{hostname}]'

    port = parsed.port
    scheme = parsed.scheme.lower()
    if port is not None and DEFAULT_PORTS.get(scheme) != port:
        hostname = f'{hostname}:{port}'

    userinfo = parsed.netloc.rpartition('@')[0] if '@' in parsed.netloc else ''
    return f'{userinfo}@{hostname}' if userinfo else hostname


def normalize_url(url: str, ignore_prefixes: Iterable[str] = ()) -> str:
    """
    Canonicalize a URL for identity comparisons.

    - Drops the fragment
    - Removes query parameters whose name starts with any ignore prefix
      (case-insensitive); the remaining segments keep their order and bytes
    - Lowercases scheme and host, removes default ports
    - Uses ``/`` for an empty http(s) path

    If the URL cannot be parsed, the input is returned with its fragment
    truncated.
    """
    if not url:
        return ''

    try:
        parsed = urlsplit(url.strip())
        scheme = parsed.scheme.lower()
        netloc = _build_netloc(parsed) if parsed.netloc else ''
    except ValueError:
        return _strip_fragment(url)

    path = parsed.path
    if not netloc and path.startswith('//'):
        # urlunsplit would turn a leading '//' back into an authority
        path = '/' + path.lstrip('/')
    if scheme in HTTP_SCHEMES and netloc and not path:
        path = '/'

    query = _filter_query(parsed.query, ignore_prefixes)
    return urlunsplit((scheme, netloc, path, query, ''))


def resolve_url(href: str, base_url: str) -> Optional[str]:
    """Resolve a raw reference against the page URL, or None if it is malformed."""
    if not href:
        return None
    try:
        resolved = urljoin(base_url, href.strip())
        # Force validation of the authority part (bad IPv6 literals, ports).
        parsed = urlsplit(resolved)
        parsed.port
    except ValueError:
        return None
    return resolved or None


def is_http_url(url: str) -> bool:
    """Check whether a URL is an absolute http(s) URL with a host."""
    try:
        parsed = urlsplit(url)
        return parsed.scheme.lower() in HTTP_SCHEMES and bool(parsed.hostname)
    except ValueError:
        return False
