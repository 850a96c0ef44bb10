import zipfile

import pytest

from main import ClonerApp, apply_overrides, build_parser
from site_cloner.utils.config import Config


def test_overrides_take_precedence():
    args = build_parser().parse_args(
        ['http://example.com', '--depth', '0', '--concurrency', '3', '--insecure', '--output', 'out']
    )
    config = apply_overrides(Config(), args)
    assert config.crawler.max_depth == 0
    assert config.crawler.max_concurrent_requests == 3
    assert config.crawler.allow_insecure_ssl is True
    assert config.output.directory == 'out'


def test_bad_concurrency():
    args = build_parser().parse_args(['http://example.com', '--concurrency', '0'])
    with pytest.raises(ValueError):
        apply_overrides(Config(), args)


async def test_invalid_target_exits_with_2(config, tmp_path):
    code = await ClonerApp(config).run('ftp://example.com', 1, str(tmp_path / 'out'), None)
    assert code == 2
    assert not (tmp_path / 'out').exists()


async def test_clone_and_archive(site, config, tmp_path):
    base, _ = await site({'/': ('<p>hello</p>', 'text/html')})
    archive = tmp_path / 'cloned-site.zip'

    code = await ClonerApp(config).run(base, 0, str(tmp_path / 'out'), str(archive))

    assert code == 0
    with zipfile.ZipFile(archive) as zf:
        assert zf.namelist() == ['index.html']


async def test_root_failure_exits_with_1(site, config, tmp_path):
    base, _ = await site({})
    code = await ClonerApp(config).run(base, 0, str(tmp_path / 'out'), None)
    assert code == 1


async def test_stale_files_in_output_are_not_archived(site, config, tmp_path, caplog):
    base, _ = await site({'/': ('<p>hello</p>', 'text/html')})
    out = tmp_path / 'out'
    (out / 'old').mkdir(parents=True)
    (out / 'old' / 'other-site.html').write_text('stale')
    archive = tmp_path / 'cloned-site.zip'

    with caplog.at_level('WARNING'):
        code = await ClonerApp(config).run(base, 0, str(out), str(archive))

    assert code == 0
    with zipfile.ZipFile(archive) as zf:
        assert zf.namelist() == ['index.html']
    assert any('is not empty' in r.getMessage() for r in caplog.records)
