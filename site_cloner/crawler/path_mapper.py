"""
Deterministic mapping from remote URLs to paths inside the mirror.

Every function here is pure: the same URL and kind always give the same
relative path, so a page's links can be rewritten before the target page
has been fetched.
"""

import hashlib
import posixpath
import re
from urllib.parse import unquote, urldefrag, urlparse

from .url_classifier import ResourceKind

ASSET_ROOT = 'assets'

ASSET_DIRS = {
    ResourceKind.STYLESHEET: 'css',
    ResourceKind.SCRIPT: 'js',
    ResourceKind.IMAGE: 'images',
    ResourceKind.OTHER: 'misc',
}

PAGE_SUFFIXES = ('.html', '.htm')
INDEX_PAGE = 'index.html'

# Most filesystems cap a single name at 255 bytes
MAX_NAME_BYTES = 200

# Directories never end in a page suffix, so no page file can shadow one
DIRECTORY_MARK = '_'

_ILLEGAL_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')


def _sanitize_segment(segment: str) -> str:
    segment = _ILLEGAL_CHARS.sub('_', segment).strip()
    # Windows refuses names ending in a dot or space
    return segment.rstrip('. ') or '_'


def _fit_name(name: str, suffix: str = '') -> str:
    """
    Bound ``name + suffix`` to MAX_NAME_BYTES of UTF-8.

    Overlong names are cut and tagged with a digest of the full name, so two
    long names sharing a prefix still map apart. ``suffix`` survives intact.
    """
    full = name + suffix
    if len(full.encode('utf-8')) <= MAX_NAME_BYTES:
        return full
    tag = f"-{url_digest(full)}"
    budget = MAX_NAME_BYTES - len(f"{tag}{suffix}".encode('utf-8'))
    head = name.encode('utf-8')[:budget].decode('utf-8', 'ignore')
    return f"{head}{tag}{suffix}"


def _directory_name(segment: str) -> str:
    if segment.lower().endswith(PAGE_SUFFIXES):
        segment += DIRECTORY_MARK
    return _fit_name(segment)


def _split_segments(path: str):
    """Split before percent-decoding so an encoded '/' stays inside its segment."""
    segments = []
    for raw in path.split('/'):
        segment = unquote(raw)
        if segment and segment not in ('.', '..'):
            segments.append(_sanitize_segment(segment))
    return segments


def url_digest(value: str, length: int = 8) -> str:
    """Short md5 hex digest used to key assets by URL."""
    return hashlib.md5(value.encode('utf-8')).hexdigest()[:length]


def map_page_path(url: str) -> str:
    """
    Map a page URL onto the mirror tree following its path structure.

    /            -> index.html
    /docs/       -> docs/index.html
    /about       -> about.html
    /a/b.html    -> a/b.html
    /a.html/b    -> a.html_/b.html
    /list?page=2 -> list-<sha1(query)[:8]>.html

    The query string is folded into the file name as a hash so distinct
    query-bearing pages never share a file and no query characters reach
    the filesystem.
    """
    url, _ = urldefrag(url)
    parsed = urlparse(url)
    path = parsed.path or '/'

    segments = _split_segments(path)
    if path.endswith('/') or not segments:
        segments.append(INDEX_PAGE)

    leaf = segments.pop()
    stem, ext = posixpath.splitext(leaf)
    if ext.lower() not in PAGE_SUFFIXES:
        stem, ext = leaf, '.html'

    if parsed.query:
        query_hash = hashlib.sha1(parsed.query.encode('utf-8')).hexdigest()[:8]
        stem = f"{stem}-{query_hash}"

    directories = [_directory_name(seg) for seg in segments]
    return posixpath.join(*directories, _fit_name(stem, ext))


def map_asset_path(url: str, kind: ResourceKind) -> str:
    """
    Map a non-page resource to assets/<dir>/<hash>-<basename>.

    The hash covers the whole URL (query included), so two URLs sharing a
    basename never collide and the same URL always lands on the same file.
    """
    url, _ = urldefrag(url)
    parsed = urlparse(url)
    segments = _split_segments(parsed.path)
    basename = segments[-1] if segments else 'index'
    stem, ext = posixpath.splitext(basename)
    if len(ext) > 16:
        stem, ext = basename, ''
    filename = _fit_name(f"{url_digest(url)}-{stem}", ext)
    return posixpath.join(ASSET_ROOT, ASSET_DIRS.get(kind, 'misc'), filename)


def map_path(url: str, kind: ResourceKind) -> str:
    """Relative POSIX path of ``url`` inside the mirror."""
    if kind == ResourceKind.PAGE:
        return map_page_path(url)
    return map_asset_path(url, kind)


def relative_link(from_path: str, to_path: str) -> str:
    """
    Reference to ``to_path`` as seen from the file at ``from_path``.

    Both arguments are mirror-relative POSIX paths; the result always uses
    '/' regardless of platform.
    """
    start = posixpath.dirname(from_path) or '.'
    return posixpath.relpath(to_path, start)
