"""
Scope and resource-type classification for discovered references.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional
from urllib.parse import urlsplit

from .urls import DEFAULT_PORTS, HTTP_SCHEMES


class Scope(Enum):
    """Origin scope of a reference relative to the start URL."""
    INTERNAL = 'INTERNAL'
    EXTERNAL = 'EXTERNAL'
    OTHER = 'OTHER'


class ResourceType(str, Enum):
    """Semantic type of a reference.

    Non-http(s) schemes without a dedicated member are reported by their
    uppercase scheme name, so ``classify_resource`` returns a plain ``str``
    for those; every member compares equal to its own name.
    """
    HTML = 'HTML'
    IMAGE = 'IMAGE'
    SVG = 'SVG'
    PDF = 'PDF'
    CSS = 'CSS'
    JS = 'JS'
    FONT = 'FONT'
    VIDEO = 'VIDEO'
    AUDIO = 'AUDIO'
    JSON = 'JSON'
    XML = 'XML'
    ICON = 'ICON'
    ARCHIVE = 'ARCHIVE'
    MAIL = 'MAIL'
    TEL = 'TEL'
    DATA = 'DATA'
    BLOB = 'BLOB'
    FTP = 'FTP'
    OTHER = 'OTHER'

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class ScopePolicy:
    """Which hosts count as part of the crawled site."""
    same_origin_only: bool = True
    include_subdomains: bool = False


EXTENSION_TYPES: Dict[str, ResourceType] = {
    'jpg': ResourceType.IMAGE, 'jpeg': ResourceType.IMAGE, 'png': ResourceType.IMAGE,
    'gif': ResourceType.IMAGE, 'webp': ResourceType.IMAGE,
    'svg': ResourceType.SVG,
    'pdf': ResourceType.PDF,
    'css': ResourceType.CSS,
    'js': ResourceType.JS, 'mjs': ResourceType.JS,
    'woff': ResourceType.FONT, 'woff2': ResourceType.FONT, 'ttf': ResourceType.FONT,
    'otf': ResourceType.FONT, 'eot': ResourceType.FONT,
    'mp4': ResourceType.VIDEO, 'webm': ResourceType.VIDEO,
    'mp3': ResourceType.AUDIO, 'wav': ResourceType.AUDIO, 'ogg': ResourceType.AUDIO,
    'json': ResourceType.JSON,
    'xml': ResourceType.XML,
    'ico': ResourceType.ICON,
    'zip': ResourceType.ARCHIVE, 'rar': ResourceType.ARCHIVE, '7z': ResourceType.ARCHIVE,
    'gz': ResourceType.ARCHIVE, 'tar': ResourceType.ARCHIVE,
}

SCHEME_TYPES: Dict[str, ResourceType] = {
    'data': ResourceType.DATA,
    'blob': ResourceType.BLOB,
    'ftp': ResourceType.FTP,
}

_EXTENSION_PATTERN = re.compile(r'\.([a-z0-9]+)$', re.IGNORECASE)
_SCHEME_PATTERN = re.compile(r'^([a-z][a-z0-9+.\-]*):', re.IGNORECASE)


def _origin(parsed) -> tuple:
    scheme = parsed.scheme.lower()
    return scheme, (parsed.hostname or ''), parsed.port or DEFAULT_PORTS.get(scheme)


def classify_scope(url: str, start_url: str, policy: ScopePolicy) -> Scope:
    """
    Classify a resolved URL as INTERNAL, EXTERNAL or OTHER.

    Non-http(s) and malformed URLs are OTHER. With ``same_origin_only`` the
    scheme, host and effective port must match; otherwise the host must match,
    or with ``include_subdomains`` be a dot-suffix subdomain of the start host.
    """
    try:
        target = urlsplit(url)
        start = urlsplit(start_url)
        if target.scheme.lower() not in HTTP_SCHEMES or not target.hostname:
            return Scope.OTHER

        if policy.same_origin_only:
            same = _origin(target) == _origin(start)
        elif policy.include_subdomains:
            host, start_host = target.hostname, start.hostname or ''
            same = host == start_host or host.endswith('.' + start_host)
        else:
            same = target.hostname == start.hostname
    except ValueError:
        return Scope.OTHER

    return Scope.INTERNAL if same else Scope.EXTERNAL


def in_scope(url: str, start_url: str, policy: ScopePolicy) -> bool:
    """Recursion gate; uses exactly the rule set of ``classify_scope``."""
    return classify_scope(url, start_url, policy) is Scope.INTERNAL


def _scheme_of(value: str) -> Optional[str]:
    match = _SCHEME_PATTERN.match(value.strip()) if value else None
    return match.group(1).lower() if match else None


def _extension_of(url: str) -> str:
    try:
        path = urlsplit(url).path
    except ValueError:
        return ''
    match = _EXTENSION_PATTERN.search(path)
    return match.group(1).lower() if match else ''


def classify_resource(raw_href: str, resolved_url: str):
    """
    Assign a resource type to a reference.

    Precedence: scheme (mailto, tel, other non-http schemes), then the file
    extension of the resolved path, then HTML for any remaining http(s) URL,
    then OTHER.
    """
    raw_scheme = _scheme_of(raw_href)
    if raw_scheme == 'mailto':
        return ResourceType.MAIL
    if raw_scheme == 'tel':
        return ResourceType.TEL

    scheme = _scheme_of(resolved_url or raw_href)
    if scheme == 'mailto':
        return ResourceType.MAIL
    if scheme == 'tel':
        return ResourceType.TEL
    if scheme and scheme not in HTTP_SCHEMES:
        return SCHEME_TYPES.get(scheme, scheme.upper())

    extension_type = EXTENSION_TYPES.get(_extension_of(resolved_url or raw_href))
    if extension_type is not None:
        return extension_type

    if scheme in HTTP_SCHEMES:
        return ResourceType.HTML

    return ResourceType.OTHER


def is_followable(resource_type, scope: Scope) -> bool:
    """Only internal HTML documents seed further crawling."""
    return resource_type == ResourceType.HTML and scope is Scope.INTERNAL
