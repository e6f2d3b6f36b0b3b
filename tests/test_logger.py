"""
Logging Tests
"""

import json
import logging

from sitemapper.utils.config import LoggingConfig
from sitemapper.utils.logger import JSONFormatter, get_crawler_logger, setup_logging


def make_record(**extra):
    record = logging.LogRecord(
        name='sitemapper.test', level=logging.WARNING, pathname=__file__, lineno=10,
        msg='fetch %s failed', args=('https://ex.com/',), exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_fields():
    entry = json.loads(JSONFormatter().format(make_record()))

    assert entry['level'] == 'WARNING'
    assert entry['logger'] == 'sitemapper.test'
    assert entry['message'] == 'fetch https://ex.com/ failed'
    assert 'url' not in entry


def test_json_formatter_includes_url_context():
    entry = json.loads(JSONFormatter().format(make_record(url='https://ex.com/', attempt=2)))

    assert entry['url'] == 'https://ex.com/'
    assert entry['attempt'] == 2


def test_log_url_event_attaches_url(caplog):
    logger = get_crawler_logger('sitemapper.test', component='supervisor')

    with caplog.at_level(logging.INFO, logger='sitemapper.test'):
        logger.log_url_event(logging.INFO, 'https://ex.com/a', 'Fetched')

    record = caplog.records[-1]
    assert record.url == 'https://ex.com/a'
    assert record.event_type == 'url_event'
    assert record.component == 'supervisor'


def test_setup_logging_creates_log_files(tmp_path):
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    log_file = tmp_path / 'logs' / 'sitemapper.log'
    try:
        setup_logging(LoggingConfig(level='DEBUG', file=str(log_file), json=True))
        logging.getLogger('sitemapper.test').error('boom')
        for handler in root.handlers:
            handler.flush()

        assert log_file.exists()
        assert (log_file.parent / 'errors.log').read_text(encoding='utf-8').strip()
        assert root.level == logging.DEBUG
    finally:
        for handler in root.handlers:
            handler.close()
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)
