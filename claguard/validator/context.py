# The MIT License (MIT)
# Copyright © 2025 Entrius

import asyncio
import weakref
from dataclasses import dataclass, field

from claguard.boundaries import (
    DocumentCheckService,
    EntityStore,
    SignatureService,
    StatusService,
    UserStore,
    VersionControl,
)
from claguard.validator.utils.config import DEFAULT_CONFIG, ValidationConfig


@dataclass
class ClaContext:
    """Collaborators and settings shared by every validation entry point"""

    checks: DocumentCheckService
    signatures: SignatureService
    vcs: VersionControl
    status: StatusService
    entities: EntityStore
    users: UserStore
    config: ValidationConfig = field(default_factory=lambda: DEFAULT_CONFIG)
    _cache_locks: weakref.WeakKeyDictionary = field(
        default_factory=weakref.WeakKeyDictionary, init=False, repr=False, compare=False
    )

    def signature_cache_lock(self, user: str) -> asyncio.Lock:
        """Lock to hold across a get/modify/save of `user`'s signature cache.

        Locks are kept per running event loop, so a context can be reused
        across separate `asyncio.run` calls.
        """
        locks = self._cache_locks.setdefault(asyncio.get_running_loop(), {})
        key = user.lower()
        if key not in locks:
            locks[key] = asyncio.Lock()
        return locks[key]
