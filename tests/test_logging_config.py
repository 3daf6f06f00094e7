"""Tests for logging setup and sensitive data masking."""

import logging

from common.logging_config import SensitiveDataFilter, setup_application_logging, setup_logging


def make_record(msg, args=None):
    return logging.LogRecord('drive', logging.INFO, __file__, 1, msg, args, None)


def test_masks_bearer_and_token_query():
    record = make_record("GET /ipfs-content/Qm1?token=abc123 with Bearer xyz")

    SensitiveDataFilter().filter(record)

    assert 'abc123' not in record.msg
    assert 'xyz' not in record.msg
    assert 'Qm1' in record.msg


def test_masks_arguments():
    record = make_record("saving %s", ('secret=hunter2',))

    SensitiveDataFilter().filter(record)

    assert record.args == ('secret=***MASKED***',)


def test_signature_is_masked():
    assert 'sig-value' not in SensitiveDataFilter.mask('signature: sig-value')


def test_setup_logging_is_idempotent():
    logger = setup_logging('drive-test-component', log_level='DEBUG')
    again = setup_logging('drive-test-component', log_level='DEBUG')

    assert logger is again
    assert len(logger.handlers) == 1
    assert logger.level == logging.DEBUG
    assert not logger.propagate


def test_application_logging_quiets_http_libraries():
    logger = setup_application_logging(('drive-app-test', 'drive-app-test-2'), log_level='INFO')

    assert logger.name == 'drive-app-test'
    assert logging.getLogger('httpx').level == logging.WARNING
    assert any(isinstance(f, SensitiveDataFilter) for f in logging.getLogger('httpx').filters)

    setup_application_logging(('drive-app-test',), debug=True)
    assert logging.getLogger('drive-app-test').level == logging.DEBUG
    assert logging.getLogger('httpx').level == logging.DEBUG
