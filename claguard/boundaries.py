# The MIT License (MIT)
# Copyright © 2025 Entrius

"""
Collaborators consumed by the validation engine.

The engine never talks to a database, the document store or the GitHub API
directly. Each concern sits behind one of these abstract classes; every method
is a coroutine so unrelated pull request validations never block each other.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, List, Optional

from claguard.classes import (
    CheckResult,
    ClaDocument,
    LinkedItem,
    LinkedOrg,
    LinkedRepo,
    PullRequestRef,
    RepositoryRef,
    UserMap,
    UserSignatureCache,
)


class DocumentCheckService(ABC):
    """Decides whether a pull request needs a signature and whether it has one."""

    @abstractmethod
    async def check(
        self, item: LinkedItem, pull: Optional[PullRequestRef], user: Optional[str] = None
    ) -> CheckResult:
        """Check the committers of `pull`, or only `user` when one is given."""

    @abstractmethod
    async def is_cla_required(self, item: LinkedItem, pull: PullRequestRef) -> bool:
        """Allowlists, bot detection and path filters live behind this call."""


class SignatureService(ABC):
    @abstractmethod
    async def sign(
        self, item: LinkedItem, user: str, user_id: int, custom_fields: Optional[str] = None
    ) -> Any:
        """Record a signature. Raises SignatureConflictError on a duplicate (scope, user, version)."""

    @abstractmethod
    async def terminate(self, item: LinkedItem, user: str, user_id: int, end_date: datetime) -> Any:
        """Mark a signature as ended."""

    @abstractmethod
    async def get_all(self, item: LinkedItem) -> List[Any]:
        """All signatures recorded for the item's current document."""


class VersionControl(ABC):
    @abstractmethod
    async def list_open_pull_requests(self, repo: str, owner: str, token: Optional[str]) -> List[PullRequestRef]:
        ...

    @abstractmethod
    async def list_repositories(self, org: str, token: Optional[str]) -> List[RepositoryRef]:
        ...

    @abstractmethod
    async def get_user(self, username: str, token: Optional[str]) -> Optional[dict]:
        """Returns the provider's user object ({'id', 'login', ...}) or None if unknown."""


class StatusService(ABC):
    """Commit status and the single CLA comment of a pull request."""

    @abstractmethod
    async def update_status(self, pull: PullRequestRef, signed: bool, token: Optional[str]) -> None:
        ...

    @abstractmethod
    async def update_for_null_cla(self, pull: PullRequestRef, token: Optional[str]) -> None:
        ...

    @abstractmethod
    async def update_for_cla_not_required(self, pull: PullRequestRef, token: Optional[str]) -> None:
        ...

    @abstractmethod
    async def edit_comment(
        self, pull: PullRequestRef, signed: bool, user_map: UserMap, token: Optional[str]
    ) -> None:
        """Edit the CLA comment in place. Implementations never append a second comment."""

    @abstractmethod
    async def delete_comment(self, pull: PullRequestRef, token: Optional[str]) -> None:
        ...


class EntityStore(ABC):
    """Linked repository and organization records."""

    @abstractmethod
    async def get_repo(self, repo: str, owner: str) -> Optional[LinkedRepo]:
        ...

    @abstractmethod
    async def get_org(self, org: str) -> Optional[LinkedOrg]:
        ...

    @abstractmethod
    async def list_repos_by_owner(self, owner: str) -> List[LinkedRepo]:
        ...

    @abstractmethod
    async def find_repos_sharing_document(self, document: ClaDocument) -> List[LinkedRepo]:
        ...

    @abstractmethod
    async def find_orgs_sharing_document(self, document: ClaDocument) -> List[LinkedOrg]:
        ...


class UserStore(ABC):
    @abstractmethod
    async def get_signature_cache(self, user: str) -> Optional[UserSignatureCache]:
        ...

    @abstractmethod
    async def save_signature_cache(self, cache: UserSignatureCache) -> None:
        ...
