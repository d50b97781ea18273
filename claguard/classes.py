import fnmatch
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Union


class PullRequestOutcome(Enum):
    """Terminal presentation a pull request ended in after synchronization"""

    NULL_CLA = "NULL_CLA"
    NOT_REQUIRED = "NOT_REQUIRED"
    SIGNED = "SIGNED"
    NOT_SIGNED = "NOT_SIGNED"
    CHECK_FAILED = "CHECK_FAILED"


@dataclass(frozen=True)
class ClaDocument:
    """Reference to a CLA document. The version changes every time the content changes."""

    url: Optional[str]
    version: Optional[str] = None

    def __bool__(self) -> bool:
        return bool(self.url)

    def __str__(self) -> str:
        return f"{self.url}@{self.version}" if self.version else str(self.url)


def _split_patterns(patterns: Union[str, List[str], None]) -> List[str]:
    if not patterns:
        return []
    if isinstance(patterns, str):
        patterns = patterns.split(',')
    return [p.strip() for p in patterns if p and p.strip()]


@dataclass
class LinkedRepo:
    """Repository linked on its own to a CLA document"""

    repo: str
    owner: str
    token: Optional[str] = None
    document: Optional[ClaDocument] = None
    shared_document: bool = False
    excluded_users: List[str] = field(default_factory=list)
    repo_id: Optional[int] = None

    @property
    def has_document(self) -> bool:
        return bool(self.document)

    @property
    def owner_name(self) -> str:
        return self.owner

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"

    def is_user_excluded(self, login: str) -> bool:
        return any(fnmatch.fnmatch(login.lower(), p.lower()) for p in _split_patterns(self.excluded_users))

    def __str__(self) -> str:
        return f"LinkedRepo({self.full_name}, document={self.document})"


@dataclass
class LinkedOrg:
    """Organization linked to a CLA document, covering all of its repositories"""

    org: str
    token: Optional[str] = None
    document: Optional[ClaDocument] = None
    shared_document: bool = False
    excluded_repos: List[str] = field(default_factory=list)
    org_id: Optional[int] = None

    @property
    def has_document(self) -> bool:
        return bool(self.document)

    @property
    def owner_name(self) -> str:
        return self.org

    @property
    def full_name(self) -> str:
        return self.org

    def is_repo_excluded(self, repo_name: str) -> bool:
        """Check the repository name against the org's exclude patterns (wildcards supported)."""
        return any(fnmatch.fnmatch(repo_name, pattern) for pattern in _split_patterns(self.excluded_repos))

    def __str__(self) -> str:
        return f"LinkedOrg({self.org}, document={self.document})"


LinkedItem = Union[LinkedRepo, LinkedOrg]


def same_linked_item(a: Optional[LinkedItem], b: Optional[LinkedItem]) -> bool:
    """True if both items are the same linked repository or the same linked org."""
    if a is None or b is None:
        return False
    if isinstance(a, LinkedRepo) and isinstance(b, LinkedRepo):
        return a.repo.lower() == b.repo.lower() and a.owner.lower() == b.owner.lower()
    if isinstance(a, LinkedOrg) and isinstance(b, LinkedOrg):
        return a.org.lower() == b.org.lower()
    return False


def shares_document_with(a: Optional[LinkedItem], b: Optional[LinkedItem]) -> bool:
    """True if both items opted into sharing the same document."""
    if a is None or b is None or not a.has_document or not b.has_document:
        return False
    return a.shared_document and b.shared_document and a.document.url == b.document.url


@dataclass
class RepositoryRef:
    """Repository as listed by the version-control provider"""

    name: str
    owner: str
    repo_id: Optional[int] = None

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"

    @classmethod
    def from_github_response(cls, repo: Dict[str, Any]) -> 'RepositoryRef':
        """Create RepositoryRef from GitHub API response"""
        return cls(name=repo['name'], owner=repo['owner']['login'], repo_id=repo.get('id'))


@dataclass
class PullRequestRef:
    """Open pull request. Never persisted, fetched fresh on every batch pass."""

    repo: str
    owner: str
    number: int
    sha: Optional[str] = None  # None for cached requests, resolved by the status boundary
    author_login: Optional[str] = None

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}#{self.number}"

    @classmethod
    def from_github_response(cls, repo: str, owner: str, pr: Dict[str, Any]) -> 'PullRequestRef':
        """Create PullRequestRef from GitHub API response"""
        return cls(
            repo=repo,
            owner=owner,
            number=pr['number'],
            sha=(pr.get('head') or {}).get('sha'),
            author_login=(pr.get('user') or {}).get('login'),
        )


@dataclass
class UserMap:
    """Per-committer breakdown of a check"""

    signed: List[str] = field(default_factory=list)
    not_signed: List[str] = field(default_factory=list)
    unknown: List[str] = field(default_factory=list)


@dataclass
class CheckResult:
    signed: bool
    user_map: Optional[UserMap] = None


@dataclass
class Signature:
    """A recorded CLA signature. Unique per (scope, user, document_version)."""

    user: str
    user_id: int
    document_version: Optional[str]
    owner: Optional[str] = None
    repo: Optional[str] = None
    org: Optional[str] = None
    custom_fields: Optional[str] = None
    signed_at: Optional[datetime] = None
    end_date: Optional[datetime] = None


@dataclass
class CachedRequest:
    """Open pull requests of a repository waiting for the user's signature"""

    repo: str
    owner: str
    numbers: List[int] = field(default_factory=list)

    def matches(self, repo: str, owner: str) -> bool:
        return self.repo.lower() == repo.lower() and self.owner.lower() == owner.lower()


@dataclass
class UserSignatureCache:
    """Pull requests known to need a status update once the user signs"""

    user: str
    user_id: Optional[int] = None
    requests: List[CachedRequest] = field(default_factory=list)

    def remember(self, repo: str, owner: str, number: int) -> bool:
        """Record a pull request number. Returns False if it was already known."""
        for request in self.requests:
            if request.matches(repo, owner):
                if number in request.numbers:
                    return False
                request.numbers.append(number)
                return True
        self.requests.append(CachedRequest(repo=repo, owner=owner, numbers=[number]))
        return True


@dataclass
class BatchResult:
    """Result of validating all open pull requests of one repository"""

    repo: str
    owner: str
    outcomes: Dict[int, PullRequestOutcome] = field(default_factory=dict)
    errors: List[str] = field(default_factory=list)

    @property
    def attempted(self) -> int:
        return len(self.outcomes) + len(self.errors)

    def count(self, outcome: PullRequestOutcome) -> int:
        return sum(1 for o in self.outcomes.values() if o == outcome)


@dataclass
class OrgBatchResult:
    """Result of an organization wide validation"""

    org: str
    blocks: int = 0
    repositories: List[BatchResult] = field(default_factory=list)
    excluded: List[str] = field(default_factory=list)
    overridden: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def pull_requests(self) -> int:
        return sum(len(r.outcomes) for r in self.repositories)


@dataclass
class PropagationResult:
    """Result of revalidating every repository and org sharing one document"""

    document: ClaDocument
    repositories: List[BatchResult] = field(default_factory=list)
    organizations: List[OrgBatchResult] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)


@dataclass
class SignResult:
    """Result of recording a signature and updating the affected pull requests"""

    signature: Any
    targeted_updates: int = 0
    pruned_requests: int = 0
    fallback: Optional[str] = None  # "shared", "org", "repo" when a full revalidation ran
