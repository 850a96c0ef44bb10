"""
Page rewriter: parses a page, points its references at the local mirror
and reports the resources it discovered.
"""

import logging
from typing import Callable, Dict, List, Optional, Union
from urllib.parse import urldefrag, urlparse
from dataclasses import dataclass, field
from bs4 import BeautifulSoup

from .url_classifier import ResourceKind, classify, is_same_origin, rel_tokens, resolve_url
from .path_mapper import map_path, relative_link
from ..errors import ParseError


# (tag, attribute) pairs that carry a resource the page needs to render
ASSET_SELECTORS = [
    ('link', 'href'),
    ('script', 'src'),
    ('img', 'src'),
]

ASSET_LINK_RELS = {'stylesheet', 'icon', 'shortcut', 'apple-touch-icon',
                   'apple-touch-icon-precomposed'}

KindAssigner = Callable[[str, ResourceKind], ResourceKind]


@dataclass(frozen=True)
class ResourceRef:
    """A resource discovered while rewriting a page."""
    url: str
    kind: ResourceKind
    referrer: str


@dataclass
class RewriteResult:
    """Rewritten markup of one page plus everything it references."""
    page_url: str
    local_path: str
    html: str
    assets: List[ResourceRef] = field(default_factory=list)
    links: List[ResourceRef] = field(default_factory=list)


class ContentRewriter:
    """
    Rewrites resource and hyperlink references of a page so the mirror is
    self-contained.

    Assets (stylesheets, icons, scripts, images) are pointed at their mapped
    location relative to the page. Same-origin hyperlinks are pointed at the
    target page's mapped location, whether or not that page gets fetched.
    Off-origin hyperlinks are left as absolute URLs.

    A URL referenced both as an asset and as a hyperlink is mapped once.
    ``assign_kind(url, proposed)`` returns the kind the URL is mirrored
    under; sharing one assigner across a job keeps every page consistent.
    Without it, the decision is made per page with assets taking precedence.
    """

    def __init__(self, target_host: str, parser_features: str = 'lxml',
                 assign_kind: Optional[KindAssigner] = None):
        self.target_host = target_host.lower()
        self.parser_features = parser_features
        self.assign_kind = assign_kind
        self.logger = logging.getLogger(__name__)

    def rewrite(self, markup: Union[str, bytes], page_url: str,
                base_url: Optional[str] = None,
                encoding: Optional[str] = None) -> RewriteResult:
        """
        Rewrite one page.

        Args:
            markup: Raw page markup
            page_url: URL the page was requested as; decides its local path
            base_url: URL to resolve references against (final URL after
                redirects); defaults to page_url
            encoding: Declared charset when markup is bytes

        Returns:
            RewriteResult with the rewritten markup and discovered references

        Raises:
            ParseError: the markup could not be parsed
        """
        try:
            if isinstance(markup, bytes):
                soup = BeautifulSoup(markup, self.parser_features, from_encoding=encoding)
            else:
                soup = BeautifulSoup(markup, self.parser_features)
        except Exception as e:
            raise ParseError(f"Could not parse {page_url}: {e}") from e

        page_path = map_path(page_url, ResourceKind.PAGE)
        base = self._extract_base(soup, base_url or page_url)

        assets: Dict[str, ResourceRef] = {}
        links: Dict[str, ResourceRef] = {}

        page_kinds: Dict[str, ResourceKind] = {}
        assign = self.assign_kind or page_kinds.setdefault

        self._rewrite_assets(soup, base, page_url, page_path, assign, assets)
        self._rewrite_links(soup, base, page_url, page_path, assign, assets, links)

        self.logger.debug(f"Rewrote {page_url} -> {page_path}: "
                          f"{len(assets)} assets, {len(links)} same-origin links")

        return RewriteResult(
            page_url=page_url,
            local_path=page_path,
            html=str(soup),
            assets=list(assets.values()),
            links=list(links.values())
        )

    def _extract_base(self, soup: BeautifulSoup, default: str) -> str:
        """Honour <base href> for resolution, then drop it from the mirror copy."""
        base = default
        for base_tag in soup.find_all('base'):
            if base_tag.get('href'):
                resolved = resolve_url(default, base_tag['href'])
                if resolved and base == default:
                    base = resolved
                del base_tag['href']
            if not base_tag.attrs:
                base_tag.decompose()
        return base

    def _rewrite_assets(self, soup: BeautifulSoup, base: str, page_url: str, page_path: str,
                        assign: KindAssigner, assets: Dict[str, ResourceRef]):
        for tag_name, attr in ASSET_SELECTORS:
            for element in soup.find_all(tag_name, attrs={attr: True}):
                rel = element.get('rel')
                if tag_name == 'link' and not (rel_tokens(rel) & ASSET_LINK_RELS):
                    continue

                url = resolve_url(base, element[attr])
                if not url:
                    continue

                # Kind PAGE here means the URL was linked first; it is still fetched now
                kind = assign(url, classify(url, tag_name, rel))
                local_path = map_path(url, kind)
                assets.setdefault(url, ResourceRef(url=url, kind=kind, referrer=page_url))
                element[attr] = relative_link(page_path, local_path)

    def _rewrite_links(self, soup: BeautifulSoup, base: str, page_url: str, page_path: str,
                       assign: KindAssigner, assets: Dict[str, ResourceRef],
                       links: Dict[str, ResourceRef]):
        for element in soup.find_all(['a', 'area'], href=True):
            href = element['href'].strip()
            if not href or href.startswith('#'):
                continue

            url = resolve_url(base, href)
            if not url:
                continue

            fragment = urldefrag(href)[1]
            suffix = f"#{fragment}" if fragment else ''

            if not is_same_origin(url, self.target_host):
                if urlparse(href).scheme:
                    continue
                element['href'] = url + suffix
                continue

            kind = assign(url, classify(url, element.name))
            local_path = map_path(url, kind)
            if kind == ResourceKind.PAGE:
                links.setdefault(url, ResourceRef(url=url, kind=kind, referrer=page_url))
            else:
                assets.setdefault(url, ResourceRef(url=url, kind=kind, referrer=page_url))

            element['href'] = relative_link(page_path, local_path) + suffix
