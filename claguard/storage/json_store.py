# The MIT License (MIT)
# Copyright © 2025 Entrius

"""
JSON file backed stores for simple, single-process deployments.

File layout:
    {
        "repos": [{"repo", "owner", "token", "document": {"url", "version"}, "shared_document", "excluded_users"}],
        "orgs": [{"org", "token", "document": {"url", "version"}, "shared_document", "excluded_repos"}],
        "users": {"<login>": {"user_id", "requests": [{"repo", "owner", "numbers"}]}},
        "signatures": [{"user", "user_id", "owner", "repo", "org", "document_url", "document_version", ...}]
    }

All reads and writes happen without awaiting in between, so coroutines of one
event loop never interleave a read-modify-write of the file.
"""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import bittensor as bt

from claguard.boundaries import EntityStore, SignatureService, UserStore
from claguard.classes import (
    CachedRequest,
    ClaDocument,
    LinkedItem,
    LinkedOrg,
    LinkedRepo,
    Signature,
    UserSignatureCache,
)
from claguard.exceptions import SignatureConflictError

EMPTY_STORE = {'repos': [], 'orgs': [], 'users': {}, 'signatures': []}


class JsonFileStore:
    """Loads and saves the whole store file."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def load(self) -> Dict[str, Any]:
        if not self.path.exists():
            return json.loads(json.dumps(EMPTY_STORE))
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            bt.logging.error(f"Failed to parse JSON from {self.path}: {e}")
            raise

        if not isinstance(data, dict):
            raise ValueError(f"Expected dict from {self.path}, got {type(data)}")
        for key, default in EMPTY_STORE.items():
            data.setdefault(key, type(default)())
        return data

    def save(self, data: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + '.tmp')
        with open(tmp_path, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2, default=str)
        tmp_path.replace(self.path)


def _document_from_json(raw: Optional[Dict[str, Any]]) -> Optional[ClaDocument]:
    if not raw or not raw.get('url'):
        return None
    return ClaDocument(url=raw['url'], version=raw.get('version'))


def repo_from_json(raw: Dict[str, Any]) -> LinkedRepo:
    return LinkedRepo(
        repo=raw['repo'],
        owner=raw['owner'],
        token=raw.get('token'),
        document=_document_from_json(raw.get('document')),
        shared_document=bool(raw.get('shared_document', False)),
        excluded_users=raw.get('excluded_users') or [],
        repo_id=raw.get('repo_id'),
    )


def org_from_json(raw: Dict[str, Any]) -> LinkedOrg:
    return LinkedOrg(
        org=raw['org'],
        token=raw.get('token'),
        document=_document_from_json(raw.get('document')),
        shared_document=bool(raw.get('shared_document', False)),
        excluded_repos=raw.get('excluded_repos') or [],
        org_id=raw.get('org_id'),
    )


class JsonEntityStore(EntityStore):
    def __init__(self, store: JsonFileStore):
        self.store = store

    def _repos(self) -> List[LinkedRepo]:
        return [repo_from_json(raw) for raw in self.store.load()['repos']]

    def _orgs(self) -> List[LinkedOrg]:
        return [org_from_json(raw) for raw in self.store.load()['orgs']]

    async def get_repo(self, repo: str, owner: str) -> Optional[LinkedRepo]:
        for linked in self._repos():
            if linked.repo.lower() == repo.lower() and linked.owner.lower() == owner.lower():
                return linked
        return None

    async def get_org(self, org: str) -> Optional[LinkedOrg]:
        for linked in self._orgs():
            if linked.org.lower() == org.lower():
                return linked
        return None

    async def list_repos_by_owner(self, owner: str) -> List[LinkedRepo]:
        return [linked for linked in self._repos() if linked.owner.lower() == owner.lower()]

    async def find_repos_sharing_document(self, document: ClaDocument) -> List[LinkedRepo]:
        return [r for r in self._repos() if r.shared_document and r.has_document and r.document.url == document.url]

    async def find_orgs_sharing_document(self, document: ClaDocument) -> List[LinkedOrg]:
        return [o for o in self._orgs() if o.shared_document and o.has_document and o.document.url == document.url]


class JsonUserStore(UserStore):
    def __init__(self, store: JsonFileStore):
        self.store = store

    async def get_signature_cache(self, user: str) -> Optional[UserSignatureCache]:
        raw = self.store.load()['users'].get(user)
        if raw is None:
            return None
        return UserSignatureCache(
            user=user,
            user_id=raw.get('user_id'),
            requests=[
                CachedRequest(repo=r['repo'], owner=r['owner'], numbers=list(r.get('numbers') or []))
                for r in raw.get('requests') or []
            ],
        )

    async def save_signature_cache(self, cache: UserSignatureCache) -> None:
        data = self.store.load()
        data['users'][cache.user] = {
            'user_id': cache.user_id,
            'requests': [{'repo': r.repo, 'owner': r.owner, 'numbers': r.numbers} for r in cache.requests],
        }
        self.store.save(data)


def _scope_matches(raw: Dict[str, Any], item: LinkedItem) -> bool:
    if isinstance(item, LinkedOrg):
        return (raw.get('org') or '').lower() == item.org.lower()
    return (raw.get('repo') or '').lower() == item.repo.lower() and (raw.get('owner') or '').lower() == item.owner.lower()


def _signature_from_json(raw: Dict[str, Any]) -> Signature:
    return Signature(
        user=raw['user'],
        user_id=raw['user_id'],
        document_version=raw.get('document_version'),
        owner=raw.get('owner'),
        repo=raw.get('repo'),
        org=raw.get('org'),
        custom_fields=raw.get('custom_fields'),
        signed_at=datetime.fromisoformat(raw['signed_at']) if raw.get('signed_at') else None,
        end_date=datetime.fromisoformat(raw['end_date']) if raw.get('end_date') else None,
    )


class JsonSignatureStore(SignatureService):
    """Signatures scoped by repo/org, or by document URL for shared documents."""

    def __init__(self, store: JsonFileStore):
        self.store = store

    def _matching(self, data: Dict[str, Any], item: LinkedItem) -> List[Dict[str, Any]]:
        document = item.document
        matches = []
        for raw in data['signatures']:
            if document is None or raw.get('document_url') != document.url:
                continue
            if raw.get('document_version') != document.version:
                continue
            if item.shared_document or _scope_matches(raw, item):
                matches.append(raw)
        return matches

    def _active(self, data: Dict[str, Any], item: LinkedItem, user: str) -> List[Dict[str, Any]]:
        """Signatures of `user` for the item's document that have not been terminated."""
        now = datetime.now(timezone.utc)
        return [
            raw
            for raw in self._matching(data, item)
            if raw['user'].lower() == user.lower()
            and not (raw.get('end_date') and datetime.fromisoformat(raw['end_date']) <= now)
        ]

    def has_signed(self, item: LinkedItem, user: str) -> bool:
        """True if `user` holds an active signature for the current version of the item's document."""
        return bool(self._active(self.store.load(), item, user))

    async def sign(self, item: LinkedItem, user: str, user_id: int, custom_fields: Optional[str] = None) -> Signature:
        if not item.has_document:
            raise ValueError(f"No CLA document linked to {item.full_name}")

        data = self.store.load()
        if self._active(data, item, user):
            raise SignatureConflictError(f"{user} already signed the CLA of {item.full_name} ({item.document})")

        raw = {
            'user': user,
            'user_id': user_id,
            'owner': item.owner_name if isinstance(item, LinkedRepo) else None,
            'repo': item.repo if isinstance(item, LinkedRepo) else None,
            'org': item.org if isinstance(item, LinkedOrg) else None,
            'document_url': item.document.url,
            'document_version': item.document.version,
            'custom_fields': custom_fields,
            'signed_at': datetime.now(timezone.utc).isoformat(),
            'end_date': None,
        }
        data['signatures'].append(raw)
        self.store.save(data)
        return _signature_from_json(raw)

    async def terminate(self, item: LinkedItem, user: str, user_id: int, end_date: datetime) -> Signature:
        data = self.store.load()
        for raw in self._active(data, item, user):
            if raw.get('user_id') == user_id:
                if end_date.tzinfo is None:
                    end_date = end_date.replace(tzinfo=timezone.utc)
                raw['end_date'] = end_date.isoformat()
                self.store.save(data)
                return _signature_from_json(raw)
        raise LookupError(f"Cannot find CLA signature of {user} for {item.full_name}")

    async def get_all(self, item: LinkedItem) -> List[Signature]:
        return [_signature_from_json(raw) for raw in self._matching(self.store.load(), item)]
