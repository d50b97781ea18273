# The MIT License (MIT)
# Copyright © 2025 Entrius

"""
Tests for the events logger, the org batch summary and secret masking.
"""

import logging
from unittest.mock import patch

import pytest

from claguard.classes import BatchResult, OrgBatchResult, PullRequestOutcome
from claguard.utils.logging import log_batch_summary, setup_events_logger
from claguard.utils.utils import mask_secret


@pytest.fixture
def events_logger(tmp_path):
    logger = setup_events_logger(str(tmp_path))
    yield logger
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)


def _org_result():
    return OrgBatchResult(
        org='octo-org',
        blocks=1,
        repositories=[
            BatchResult(
                repo='api',
                owner='octo-org',
                outcomes={1: PullRequestOutcome.SIGNED, 2: PullRequestOutcome.NOT_SIGNED},
                errors=['#3: boom'],
            )
        ],
        excluded=['docs'],
    )


class TestBatchSummary:
    @patch('claguard.utils.logging.bt.logging')
    def test_summary_counts(self, mock_logging):
        log_batch_summary(_org_result(), 1.5)

        lines = ' '.join(c[0][0] for c in mock_logging.info.call_args_list)
        assert 'octo-org' in lines
        assert 'Pull requests: 2' in lines
        assert 'SIGNED: 1' in lines
        assert '1 excluded' in lines
        mock_logging.warning.assert_called_once()

    @patch('claguard.utils.logging.bt.logging')
    def test_summary_written_to_events_log(self, mock_logging, events_logger, tmp_path):
        log_batch_summary(_org_result(), 0.1)
        for handler in events_logger.handlers:
            handler.flush()

        content = (tmp_path / 'events.log').read_text()
        assert 'org=octo-org' in content
        assert 'pull_requests=2' in content
        assert 'failed=1' in content

    def test_events_logger_level(self, events_logger):
        assert logging.getLevelName(events_logger.level) == 'EVENT'

    def test_setup_is_idempotent_per_directory(self, events_logger, tmp_path):
        assert setup_events_logger(str(tmp_path)) is events_logger
        assert len(events_logger.handlers) == 1


class TestMaskSecret:
    def test_masks(self):
        masked = mask_secret('ghp_secret')
        assert 'ghp_secret' not in masked
        assert masked.startswith('<masked:')

    def test_stable(self):
        assert mask_secret('abc') == mask_secret('abc')

    def test_empty(self):
        assert mask_secret(None) == '<none>'
