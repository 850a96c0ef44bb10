import json
import logging

from site_cloner.utils.config import LoggingConfig
from site_cloner.utils.logger import JSONFormatter, get_crawler_logger, setup_logging


def test_json_formatter_includes_resource_context(caplog):
    log = get_crawler_logger('site_cloner.test', job='http://example.com/')
    with caplog.at_level(logging.WARNING, logger='site_cloner.test'):
        log.resource_event(logging.WARNING, 'http://example.com/x.png', 'image', 'Skipping image')

    entry = json.loads(JSONFormatter().format(caplog.records[0]))
    assert entry['message'] == 'Skipping image'
    assert entry['level'] == 'WARNING'
    assert entry['job'] == 'http://example.com/'
    assert entry['url'] == 'http://example.com/x.png'
    assert entry['kind'] == 'image'
    assert entry['event'] == 'resource'


def test_adapter_context_on_plain_messages(caplog):
    log = get_crawler_logger('site_cloner.test', job='http://example.com/')
    with caplog.at_level(logging.INFO, logger='site_cloner.test'):
        log.info('hello')

    record = caplog.records[0]
    assert record.job == 'http://example.com/'
    assert not hasattr(record, 'url')


def test_setup_logging_with_file(tmp_path):
    log_file = tmp_path / 'logs' / 'cloner.log'
    root = setup_logging(LoggingConfig(level='DEBUG', file=str(log_file), json=True))
    try:
        logging.getLogger('site_cloner.test').info('written')
        for handler in root.handlers:
            handler.flush()
        lines = [json.loads(line) for line in log_file.read_text().splitlines()]
        assert any(line['message'] == 'written' for line in lines)
    finally:
        for handler in list(root.handlers):
            if isinstance(handler, logging.FileHandler):
                root.removeHandler(handler)
                handler.close()
