"""
URL resolution and resource classification.
"""

import posixpath
from enum import Enum
from typing import Iterable, Optional, Union
from urllib.parse import unquote, urldefrag, urljoin, urlparse, urlunparse

from ..errors import InvalidInputError


class ResourceKind(Enum):
    """Kinds of resources a page can reference."""
    PAGE = "page"
    STYLESHEET = "stylesheet"
    SCRIPT = "script"
    IMAGE = "image"
    OTHER = "other"


FETCHABLE_SCHEMES = ('http', 'https')
NON_FETCHABLE_PREFIXES = ('data:', 'mailto:', 'tel:', 'javascript:')

PAGE_EXTENSIONS = {
    '', '.html', '.htm', '.xhtml', '.shtml',
    '.php', '.asp', '.aspx', '.jsp', '.cfm',
}
STYLESHEET_EXTENSIONS = {'.css'}
SCRIPT_EXTENSIONS = {'.js', '.mjs'}
IMAGE_EXTENSIONS = {
    '.jpg', '.jpeg', '.png', '.gif', '.bmp', '.svg', '.webp', '.ico', '.avif',
}
OTHER_EXTENSIONS = {
    '.pdf', '.doc', '.docx', '.xls', '.xlsx', '.ppt', '.pptx',
    '.zip', '.rar', '.tar', '.gz', '.exe', '.dmg', '.iso',
    '.mp3', '.mp4', '.avi', '.mov', '.wmv', '.flv', '.webm', '.ogg',
    '.json', '.xml', '.txt',
}

ICON_RELS = {'icon', 'shortcut', 'apple-touch-icon', 'apple-touch-icon-precomposed'}


def normalize_url(url: str) -> str:
    """Strip the fragment, lowercase the host and give an empty path '/'."""
    url, _ = urldefrag(url)
    parsed = urlparse(url)
    return urlunparse((
        parsed.scheme.lower(),
        parsed.netloc.lower(),
        parsed.path or '/',
        parsed.params,
        parsed.query,
        ''
    ))


def resolve_url(base: str, relative: Optional[str]) -> Optional[str]:
    """
    Resolve a reference found in a page against the page URL.

    Args:
        base: Absolute URL of the referencing document
        relative: Raw attribute value

    Returns:
        Normalized absolute URL, or None when the reference is empty,
        unparsable or uses a scheme that cannot be fetched
    """
    if relative is None:
        return None
    relative = relative.strip()
    if not relative or relative.lower().startswith(NON_FETCHABLE_PREFIXES):
        return None

    try:
        absolute = urljoin(base, relative)
        parsed = urlparse(absolute)
        # Accessing .port validates it; bad ports raise ValueError
        parsed.port
    except ValueError:
        return None

    if parsed.scheme.lower() not in FETCHABLE_SCHEMES or not parsed.hostname:
        return None

    return normalize_url(absolute)


def extension_of(url: str) -> str:
    """Lowercase file extension of the URL path, '' when there is none."""
    path = unquote(urlparse(url).path)
    return posixpath.splitext(posixpath.basename(path))[1].lower()


def classify_by_extension(url: str) -> ResourceKind:
    """Guess the resource kind from the URL's file extension alone."""
    ext = extension_of(url)
    if ext in STYLESHEET_EXTENSIONS:
        return ResourceKind.STYLESHEET
    if ext in SCRIPT_EXTENSIONS:
        return ResourceKind.SCRIPT
    if ext in IMAGE_EXTENSIONS:
        return ResourceKind.IMAGE
    if ext in PAGE_EXTENSIONS:
        return ResourceKind.PAGE
    if ext in OTHER_EXTENSIONS:
        return ResourceKind.OTHER
    # Unknown extensions on a path (e.g. /v1.2/docs) are most likely pages
    return ResourceKind.PAGE


def rel_tokens(rel: Union[str, Iterable[str], None]) -> set:
    if not rel:
        return set()
    if isinstance(rel, str):
        rel = rel.split()
    return {token.lower() for token in rel}


def classify(url: str, tag: Optional[str] = None,
             rel: Union[str, Iterable[str], None] = None) -> ResourceKind:
    """
    Decide the kind of a referenced resource.

    The referencing tag is the primary signal; the file extension is used
    when the tag is absent or does not pin the kind down (anchors and
    unknown link relations).
    """
    tag = (tag or '').lower()
    rels = rel_tokens(rel)

    if tag == 'link':
        if 'stylesheet' in rels:
            return ResourceKind.STYLESHEET
        if rels & ICON_RELS:
            return ResourceKind.IMAGE
    elif tag == 'script':
        return ResourceKind.SCRIPT
    elif tag == 'img':
        return ResourceKind.IMAGE
    elif tag in ('a', 'area'):
        return classify_by_extension(url)

    kind = classify_by_extension(url)
    if tag == 'link' and kind == ResourceKind.PAGE:
        return ResourceKind.OTHER
    return kind


def is_same_origin(url: str, target_host: str) -> bool:
    """Hostname equality; scheme and port are ignored."""
    try:
        hostname = urlparse(url).hostname
    except ValueError:
        return False
    return bool(hostname) and hostname == (target_host or '').lower()


def validate_target_url(url: Optional[str]) -> str:
    """
    Check a job's target URL before any crawl work starts.

    Raises:
        InvalidInputError: missing URL, non-http(s) scheme or no host
    """
    if not url or not url.strip():
        raise InvalidInputError("A target URL is required")

    url = url.strip()
    try:
        parsed = urlparse(url)
        parsed.port
    except ValueError as e:
        raise InvalidInputError(f"Malformed target URL {url!r}: {e}") from e

    if parsed.scheme.lower() not in FETCHABLE_SCHEMES:
        raise InvalidInputError(f"Target URL must use http or https: {url!r}")
    if not parsed.hostname:
        raise InvalidInputError(f"Target URL has no host: {url!r}")

    return normalize_url(url)
