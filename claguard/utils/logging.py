import logging
import os
from logging.handlers import RotatingFileHandler
from typing import TYPE_CHECKING

import bittensor as bt

if TYPE_CHECKING:
    from claguard.classes import OrgBatchResult

EVENTS_LOGGER_NAME = 'event'
EVENTS_LEVEL_NUM = 38
EVENTS_FILE_NAME = 'events.log'
DEFAULT_LOG_BACKUP_COUNT = 10
DEFAULT_EVENTS_RETENTION_SIZE = 5 * 1024 * 1024


def _event(self, message, *args, **kws):
    if self.isEnabledFor(EVENTS_LEVEL_NUM):
        self._log(EVENTS_LEVEL_NUM, message, args, **kws)


def setup_events_logger(full_path, events_retention_size=DEFAULT_EVENTS_RETENTION_SIZE):
    """Attach a rotating events.log in full_path to the 'event' logger.

    Calling it again for the same directory reuses the existing handler.
    """
    logging.addLevelName(EVENTS_LEVEL_NUM, 'EVENT')
    logging.Logger.event = _event

    logger = logging.getLogger(EVENTS_LOGGER_NAME)
    logger.setLevel(EVENTS_LEVEL_NUM)

    filename = os.path.abspath(os.path.join(full_path, EVENTS_FILE_NAME))
    if any(getattr(h, 'baseFilename', None) == filename for h in logger.handlers):
        return logger

    handler = RotatingFileHandler(filename, maxBytes=events_retention_size, backupCount=DEFAULT_LOG_BACKUP_COUNT)
    handler.setFormatter(logging.Formatter('%(asctime)s | %(levelname)s | %(message)s', datefmt='%Y-%m-%d %H:%M:%S'))
    handler.setLevel(EVENTS_LEVEL_NUM)
    logger.addHandler(handler)
    return logger


def log_batch_summary(result: 'OrgBatchResult', elapsed: float) -> None:
    """Log the outcome of an organization wide validation."""
    from claguard.classes import PullRequestOutcome

    bt.logging.info("=" * 70)
    bt.logging.info(f"***** Org {result.org} validated in {elapsed:.2f}s *****")
    bt.logging.info(f"  ├─ Blocks: {result.blocks} | Repositories: {len(result.repositories)}")

    if result.excluded or result.overridden:
        bt.logging.info(f"  ├─ Skipped: {len(result.excluded)} excluded, {len(result.overridden)} with their own CLA")

    counts = {
        outcome: sum(r.count(outcome) for r in result.repositories) for outcome in PullRequestOutcome
    }
    counts_str = ' | '.join(f'{outcome.value}: {count}' for outcome, count in counts.items() if count)
    bt.logging.info(f"  ├─ Pull requests: {result.pull_requests}" + (f" ({counts_str})" if counts_str else ""))

    failed = len(result.errors) + sum(len(r.errors) for r in result.repositories)
    if failed:
        bt.logging.warning(f"  └─ {failed} repositories or pull requests failed, see errors above")
    else:
        bt.logging.info("  └─ No failures")

    event_logger = logging.getLogger(EVENTS_LOGGER_NAME)
    if event_logger.handlers and hasattr(event_logger, 'event'):
        event_logger.event(
            f"org={result.org} blocks={result.blocks} repositories={len(result.repositories)} "
            f"pull_requests={result.pull_requests} failed={failed}"
        )
