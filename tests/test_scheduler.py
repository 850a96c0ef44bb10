import logging
from pathlib import Path

import pytest
from bs4 import BeautifulSoup

from site_cloner.crawler.scheduler import CrawlerScheduler
from site_cloner.crawler.url_frontier import CrawlJob, FileStatus
from site_cloner.errors import FetchError, FilesystemError
from site_cloner.utils.monitoring import CrawlerMonitor

from .conftest import GIF_BYTES, PNG_BYTES


def _files(root: Path):
    return sorted(p.relative_to(root).as_posix() for p in root.rglob('*') if p.is_file())


def _references(page: Path):
    soup = BeautifulSoup(page.read_text(encoding='utf-8'), 'lxml')
    refs = [tag['href'] for tag in soup.find_all('link', href=True)]
    refs += [tag['src'] for tag in soup.find_all(['script', 'img'], src=True)]
    return refs


SINGLE_PAGE = {
    '/': ("""<html><head>
            <link rel="stylesheet" href="/static/site.css">
            <script src="/js/app.js"></script>
          </head><body>
            <img src="/img/a.png"><img src="img/b.gif">
            <a href="/about">About</a>
          </body></html>""", 'text/html'),
    '/static/site.css': ('body { color: red; }', 'text/css'),
    '/js/app.js': ('console.log("hi");', 'application/javascript'),
    '/img/a.png': (PNG_BYTES, 'image/png'),
    '/img/b.gif': (GIF_BYTES, 'image/gif'),
    '/about': ('<html><body>About</body></html>', 'text/html'),
}


async def test_single_page_with_assets_at_depth_zero(site, config, tmp_path):
    base, hits = await site(SINGLE_PAGE)
    out = tmp_path / 'mirror'
    monitor = CrawlerMonitor()

    report = await CrawlerScheduler(config, monitor=monitor).run(CrawlJob.create(base, 0, out))

    files = _files(out)
    assert 'index.html' in files
    assert len([f for f in files if f.endswith('.html')]) == 1
    assert len([f for f in files if f.startswith('assets/css/')]) == 1
    assert len([f for f in files if f.startswith('assets/js/')]) == 1
    assert len([f for f in files if f.startswith('assets/images/')]) == 2
    assert len(files) == 5

    refs = _references(out / 'index.html')
    assert len(refs) == 4
    for ref in refs:
        assert (out / ref).is_file(), ref

    images = sorted((out / f).read_bytes() for f in files if f.startswith('assets/images/'))
    assert images == sorted([PNG_BYTES, GIF_BYTES])

    # Depth 0 never follows links
    assert hits['/about'] == 0
    assert report.stats.pages_saved == 1
    assert report.stats.assets_saved == 4
    assert report.failed_urls == []
    assert monitor.get_value('site_cloner_resources_fetched_total', {'kind': 'image'}) == 2


MUTUAL_PAGES = {
    '/a.html': ('<html><body><a href="/b.html">to b</a></body></html>', 'text/html'),
    '/b.html': ('<html><body><a href="a.html">to a</a>'
                '<a href="/deeper/c.html">to c</a></body></html>', 'text/html'),
    '/deeper/c.html': ('<html><body>c</body></html>', 'text/html'),
}


async def test_mutually_linked_pages_fetched_once(site, config, tmp_path):
    base, hits = await site(MUTUAL_PAGES)
    out = tmp_path / 'mirror'

    report = await CrawlerScheduler(config).run(CrawlJob.create(base + 'a.html', 1, out))

    assert _files(out) == ['a.html', 'b.html']
    assert hits['/a.html'] == 1
    assert hits['/b.html'] == 1

    a_soup = BeautifulSoup((out / 'a.html').read_text(), 'lxml')
    b_soup = BeautifulSoup((out / 'b.html').read_text(), 'lxml')
    assert a_soup.find('a')['href'] == 'b.html'
    b_links = [a['href'] for a in b_soup.find_all('a')]
    assert b_links == ['a.html', 'deeper/c.html']

    # c.html is beyond the depth budget: linked eagerly but never fetched
    assert hits['/deeper/c.html'] == 0
    assert report.stats.deepest_layer == 1


async def test_shared_links_and_assets_fetched_at_most_once(site, config, tmp_path):
    pages = {
        '/': ('<a href="/x">x</a><a href="/y">y</a><img src="/shared.png">', 'text/html'),
        '/x': ('<a href="/y">y</a><a href="/z">z</a><a href="/">home</a><img src="/shared.png">', 'text/html'),
        '/y': ('<a href="/x">x</a><a href="/z">z</a><img src="/shared.png">', 'text/html'),
        '/z': ('<a href="/">home</a><img src="/shared.png">', 'text/html'),
        '/shared.png': (PNG_BYTES, 'image/png'),
    }
    base, hits = await site(pages)
    out = tmp_path / 'mirror'

    report = await CrawlerScheduler(config).run(CrawlJob.create(base, 3, out))

    assert all(count == 1 for count in hits.values()), hits
    assert set(hits) == {'/', '/x', '/y', '/z', '/shared.png'}
    assert {'index.html', 'x.html', 'y.html', 'z.html'} <= set(_files(out))
    assert len(report.records) == 5
    assert report.stats.deepest_layer == 2


async def test_unreachable_image_is_skipped_and_logged_once(site, config, tmp_path, caplog):
    pages = {
        '/': ('<img src="/ok.png"><img src="/missing.png"><a href="/next">n</a>', 'text/html'),
        '/next': ('<img src="/missing.png"><img src="/ok.png">', 'text/html'),
        '/ok.png': (PNG_BYTES, 'image/png'),
    }
    base, hits = await site(pages)
    out = tmp_path / 'mirror'
    caplog.set_level(logging.WARNING)

    report = await CrawlerScheduler(config).run(CrawlJob.create(base, 1, out))

    assert (out / 'index.html').is_file()
    assert (out / 'next.html').is_file()
    missing_url = base + 'missing.png'
    assert report.failed_urls == [missing_url]
    assert report.records[missing_url].status == FileStatus.FAILED
    assert hits['/missing.png'] == 1

    warnings = [r for r in caplog.records
                if r.levelno >= logging.WARNING and 'missing.png' in r.getMessage()]
    assert len(warnings) == 1
    assert warnings[0].url == missing_url

    # Other references on the page still resolve
    refs = _references(out / 'index.html')
    assert any((out / ref).is_file() for ref in refs)


async def test_off_origin_links_are_not_followed(site, config, tmp_path):
    pages = {
        '/': ('<a href="http://offsite.invalid/page">away</a><a href="/local">local</a>', 'text/html'),
        '/local': ('<p>local</p>', 'text/html'),
    }
    base, hits = await site(pages)
    out = tmp_path / 'mirror'

    report = await CrawlerScheduler(config).run(CrawlJob.create(base, 2, out))

    assert 'http://offsite.invalid/page' not in report.records
    soup = BeautifulSoup((out / 'index.html').read_text(), 'lxml')
    assert soup.find('a', string='away')['href'] == 'http://offsite.invalid/page'
    assert hits['/local'] == 1


async def test_root_page_failure_fails_the_job(site, config, tmp_path):
    base, _ = await site({})
    with pytest.raises(FetchError):
        await CrawlerScheduler(config).run(CrawlJob.create(base + 'nothing', 1, tmp_path / 'out'))


async def test_broken_child_page_does_not_fail_the_job(site, config, tmp_path):
    pages = {
        '/': ('<a href="/broken">b</a><a href="/fine">f</a>', 'text/html'),
        '/broken': 500,
        '/fine': ('ok', 'text/html'),
    }
    base, _ = await site(pages)
    out = tmp_path / 'mirror'

    report = await CrawlerScheduler(config).run(CrawlJob.create(base, 1, out))

    assert _files(out) == ['fine.html', 'index.html']
    assert report.failed_urls == [base + 'broken']


async def test_filesystem_failure_is_fatal(site, config, tmp_path):
    base, _ = await site(SINGLE_PAGE)
    blocker = tmp_path / 'not-a-dir'
    blocker.write_text('occupied')

    with pytest.raises(FilesystemError):
        await CrawlerScheduler(config).run(CrawlJob.create(base, 0, blocker))


async def test_non_html_page_stored_as_is(site, config, tmp_path):
    pages = {
        '/': ('<a href="/data">data</a>', 'text/html'),
        '/data': (b'{"a": 1}', 'application/json'),
    }
    base, _ = await site(pages)
    out = tmp_path / 'mirror'

    await CrawlerScheduler(config).run(CrawlJob.create(base, 1, out))

    assert (out / 'data.html').read_bytes() == b'{"a": 1}'


async def test_overlong_slug_is_mirrored(site, config, tmp_path):
    slug = '/' + 'x' * 300
    pages = {
        '/': (f'<a href="{slug}">long</a>', 'text/html'),
        slug: ('<p>long</p>', 'text/html'),
    }
    base, hits = await site(pages)
    out = tmp_path / 'mirror'

    report = await CrawlerScheduler(config).run(CrawlJob.create(base, 1, out))

    href = BeautifulSoup((out / 'index.html').read_text(), 'lxml').find('a')['href']
    assert '<p>long</p>' in (out / href).read_text()
    assert hits[slug] == 1
    assert report.failed_urls == []


async def test_page_below_a_page_path_does_not_clash(site, config, tmp_path):
    pages = {
        '/': ('<a href="/a.html">a</a><a href="/a.html/b">b</a>', 'text/html'),
        '/a.html': ('<p>a</p>', 'text/html'),
        '/a.html/b': ('<p>b</p>', 'text/html'),
    }
    base, _ = await site(pages)
    out = tmp_path / 'mirror'

    report = await CrawlerScheduler(config).run(CrawlJob.create(base, 1, out))

    soup = BeautifulSoup((out / 'index.html').read_text(), 'lxml')
    bodies = [(out / a['href']).read_text() for a in soup.find_all('a')]
    assert '<p>a</p>' in bodies[0]
    assert '<p>b</p>' in bodies[1]
    assert report.failed_urls == []


async def test_url_used_as_image_and_link_maps_to_one_file(site, config, tmp_path):
    pages = {
        '/': ('<img src="/logo"><a href="/logo">logo</a>', 'text/html'),
        '/logo': (PNG_BYTES, 'image/png'),
    }
    base, hits = await site(pages)
    out = tmp_path / 'mirror'

    await CrawlerScheduler(config).run(CrawlJob.create(base, 1, out))

    soup = BeautifulSoup((out / 'index.html').read_text(), 'lxml')
    href = soup.find('a')['href']
    assert href == soup.find('img')['src']
    assert (out / href).read_bytes() == PNG_BYTES
    assert hits['/logo'] == 1


async def test_image_linked_from_another_page_resolves(site, config, tmp_path):
    pages = {
        '/': ('<a href="/a">a</a><a href="/b">b</a>', 'text/html'),
        '/a': ('<a href="/logo">logo</a>', 'text/html'),
        '/b': ('<img src="/logo">', 'text/html'),
        '/logo': (PNG_BYTES, 'image/png'),
    }
    base, hits = await site(pages)
    out = tmp_path / 'mirror'

    # /logo is first met as a link or as an image depending on fetch order
    await CrawlerScheduler(config).run(CrawlJob.create(base, 1, out))

    href = BeautifulSoup((out / 'a.html').read_text(), 'lxml').find('a')['href']
    src = BeautifulSoup((out / 'b.html').read_text(), 'lxml').find('img')['src']
    assert href == src
    assert (out / src).read_bytes() == PNG_BYTES
    assert hits['/logo'] == 1
