import os
from dataclasses import dataclass

import bittensor as bt

from claguard.constants import DEFAULT_TIME_TO_WAIT_MS, ORG_VALIDATION_BLOCK_SIZE

# delay between blocks of an organization wide validation, in milliseconds
TIME_TO_WAIT = int(os.getenv('CLA_TIME_TO_WAIT', DEFAULT_TIME_TO_WAIT_MS))
BLOCK_SIZE = int(os.getenv('CLA_BLOCK_SIZE', ORG_VALIDATION_BLOCK_SIZE))


@dataclass
class ValidationConfig:
    """Throttling policy of an organization wide validation.

    Passed explicitly to each validation so concurrent runs with different
    policies never see each other's settings.
    """

    time_to_wait: int = TIME_TO_WAIT  # milliseconds, 0 = unthrottled
    block_size: int = BLOCK_SIZE

    def __post_init__(self):
        if self.block_size < 1:
            raise ValueError(f"block_size must be at least 1, got {self.block_size}")
        if self.time_to_wait < 0:
            raise ValueError(f"time_to_wait must not be negative, got {self.time_to_wait}")

    @property
    def delay_seconds(self) -> float:
        return self.time_to_wait / 1000


DEFAULT_CONFIG = ValidationConfig()

# log values
bt.logging.info(f"CLA_TIME_TO_WAIT: {TIME_TO_WAIT}ms")
bt.logging.info(f"CLA_BLOCK_SIZE: {BLOCK_SIZE}")
