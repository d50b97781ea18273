# The MIT License (MIT)
# Copyright © 2025 Entrius

"""
Tests for the JSON file backed entity, user and signature stores.
"""

import asyncio
import json
from datetime import datetime, timedelta, timezone

import pytest

from claguard.classes import CachedRequest, ClaDocument, LinkedOrg, LinkedRepo, UserSignatureCache
from claguard.exceptions import SignatureConflictError
from claguard.storage.json_store import (
    JsonEntityStore,
    JsonFileStore,
    JsonSignatureStore,
    JsonUserStore,
)

DOC = {'url': 'https://gist.github.com/octocat/cla', 'version': 'v1'}


@pytest.fixture
def store(tmp_path):
    path = tmp_path / 'store.json'
    path.write_text(
        json.dumps(
            {
                'repos': [
                    {'repo': 'Hello-World', 'owner': 'octocat', 'token': 't1', 'document': DOC, 'shared_document': True},
                    {'repo': 'Spoon-Knife', 'owner': 'octocat', 'document': {'url': 'https://gist.github.com/other'}},
                    {'repo': 'plain', 'owner': 'octo-org'},
                ],
                'orgs': [
                    {'org': 'octo-org', 'token': 't2', 'document': DOC, 'shared_document': True, 'excluded_repos': 'docs-*'},
                ],
            }
        )
    )
    return JsonFileStore(path)


class TestJsonFileStore:
    def test_missing_file_loads_empty_store(self, tmp_path):
        data = JsonFileStore(tmp_path / 'nope.json').load()
        assert data == {'repos': [], 'orgs': [], 'users': {}, 'signatures': []}

    def test_missing_sections_get_defaults(self, store):
        data = store.load()
        assert data['users'] == {}
        assert data['signatures'] == []

    def test_save_round_trip(self, tmp_path):
        file_store = JsonFileStore(tmp_path / 'nested' / 'store.json')
        file_store.save({'repos': [], 'orgs': [], 'users': {'a': {}}, 'signatures': []})
        assert file_store.load()['users'] == {'a': {}}

    def test_invalid_json_raises(self, tmp_path):
        path = tmp_path / 'store.json'
        path.write_text('{not json')
        with pytest.raises(json.JSONDecodeError):
            JsonFileStore(path).load()


class TestJsonEntityStore:
    def test_get_repo_is_case_insensitive(self, store):
        repo = asyncio.run(JsonEntityStore(store).get_repo('hello-world', 'OctoCat'))
        assert repo.full_name == 'octocat/Hello-World'
        assert repo.document == ClaDocument(**DOC)
        assert repo.token == 't1'

    def test_get_org(self, store):
        org = asyncio.run(JsonEntityStore(store).get_org('octo-org'))
        assert isinstance(org, LinkedOrg)
        assert org.is_repo_excluded('docs-en')
        assert not org.is_repo_excluded('api')

    def test_repo_without_document(self, store):
        repo = asyncio.run(JsonEntityStore(store).get_repo('plain', 'octo-org'))
        assert repo.document is None
        assert not repo.has_document

    def test_sharing_queries_only_return_shared_items(self, store):
        entities = JsonEntityStore(store)
        document = ClaDocument(**DOC)

        repos = asyncio.run(entities.find_repos_sharing_document(document))
        orgs = asyncio.run(entities.find_orgs_sharing_document(document))

        assert [r.repo for r in repos] == ['Hello-World']
        assert [o.org for o in orgs] == ['octo-org']

    def test_list_repos_by_owner(self, store):
        repos = asyncio.run(JsonEntityStore(store).list_repos_by_owner('octocat'))
        assert sorted(r.repo for r in repos) == ['Hello-World', 'Spoon-Knife']


class TestJsonUserStore:
    def test_unknown_user(self, store):
        assert asyncio.run(JsonUserStore(store).get_signature_cache('hubot')) is None

    def test_save_and_load(self, store):
        users = JsonUserStore(store)
        cache = UserSignatureCache(user='hubot', user_id=42)
        cache.remember('Hello-World', 'octocat', 5)
        cache.remember('Hello-World', 'octocat', 6)

        asyncio.run(users.save_signature_cache(cache))
        loaded = asyncio.run(users.get_signature_cache('hubot'))

        assert loaded.user_id == 42
        assert loaded.requests == [CachedRequest(repo='Hello-World', owner='octocat', numbers=[5, 6])]


class TestJsonSignatureStore:
    def test_sign_and_has_signed(self, store):
        signatures = JsonSignatureStore(store)
        repo = LinkedRepo(repo='Spoon-Knife', owner='octocat', document=ClaDocument(url='https://gist.github.com/other'))

        signature = asyncio.run(signatures.sign(repo, 'hubot', 42))

        assert signature.repo == 'Spoon-Knife'
        assert signature.signed_at is not None
        assert signatures.has_signed(repo, 'HUBOT')
        assert not signatures.has_signed(repo, 'octocat')

    def test_duplicate_signature_conflicts(self, store):
        signatures = JsonSignatureStore(store)
        repo = LinkedRepo(repo='Spoon-Knife', owner='octocat', document=ClaDocument(url='https://gist.github.com/other'))
        asyncio.run(signatures.sign(repo, 'hubot', 42))

        with pytest.raises(SignatureConflictError):
            asyncio.run(signatures.sign(repo, 'hubot', 42))

    def test_new_document_version_needs_new_signature(self, store):
        signatures = JsonSignatureStore(store)
        v1 = LinkedRepo(repo='Spoon-Knife', owner='octocat', document=ClaDocument(url='u', version='v1'))
        v2 = LinkedRepo(repo='Spoon-Knife', owner='octocat', document=ClaDocument(url='u', version='v2'))
        asyncio.run(signatures.sign(v1, 'hubot', 42))

        assert not signatures.has_signed(v2, 'hubot')
        asyncio.run(signatures.sign(v2, 'hubot', 42))
        assert len(asyncio.run(signatures.get_all(v2))) == 1

    def test_shared_document_signature_covers_every_sharing_item(self, store):
        signatures = JsonSignatureStore(store)
        document = ClaDocument(**DOC)
        repo = LinkedRepo(repo='Hello-World', owner='octocat', document=document, shared_document=True)
        org = LinkedOrg(org='octo-org', document=document, shared_document=True)

        asyncio.run(signatures.sign(repo, 'hubot', 42))

        assert signatures.has_signed(org, 'hubot')
        with pytest.raises(SignatureConflictError):
            asyncio.run(signatures.sign(org, 'hubot', 42))

    def test_terminate(self, store):
        signatures = JsonSignatureStore(store)
        org = LinkedOrg(org='octo-org', document=ClaDocument(**DOC))
        asyncio.run(signatures.sign(org, 'hubot', 42))

        ended = asyncio.run(signatures.terminate(org, 'hubot', 42, datetime.now(timezone.utc) - timedelta(days=1)))

        assert ended.end_date is not None
        assert not signatures.has_signed(org, 'hubot')

    def test_terminate_in_the_future_keeps_signature_active(self, store):
        signatures = JsonSignatureStore(store)
        org = LinkedOrg(org='octo-org', document=ClaDocument(**DOC))
        asyncio.run(signatures.sign(org, 'hubot', 42))

        asyncio.run(signatures.terminate(org, 'hubot', 42, datetime.now() + timedelta(days=30)))

        assert signatures.has_signed(org, 'hubot')

    def test_terminate_unknown_signature(self, store):
        signatures = JsonSignatureStore(store)
        org = LinkedOrg(org='octo-org', document=ClaDocument(**DOC))

        with pytest.raises(LookupError):
            asyncio.run(signatures.terminate(org, 'hubot', 42, datetime.now(timezone.utc)))

    def test_sign_again_after_termination(self, store):
        signatures = JsonSignatureStore(store)
        org = LinkedOrg(org='octo-org', document=ClaDocument(**DOC))
        asyncio.run(signatures.sign(org, 'hubot', 42))
        asyncio.run(signatures.terminate(org, 'hubot', 42, datetime.now(timezone.utc) - timedelta(days=1)))

        asyncio.run(signatures.sign(org, 'hubot', 42))

        assert signatures.has_signed(org, 'hubot')
        assert len(asyncio.run(signatures.get_all(org))) == 2

        ended = asyncio.run(signatures.terminate(org, 'hubot', 42, datetime.now(timezone.utc) - timedelta(hours=1)))
        assert ended.signed_at is not None
        assert not signatures.has_signed(org, 'hubot')

    def test_terminated_signature_cannot_be_terminated_again(self, store):
        signatures = JsonSignatureStore(store)
        org = LinkedOrg(org='octo-org', document=ClaDocument(**DOC))
        asyncio.run(signatures.sign(org, 'hubot', 42))
        asyncio.run(signatures.terminate(org, 'hubot', 42, datetime.now(timezone.utc) - timedelta(days=1)))

        with pytest.raises(LookupError):
            asyncio.run(signatures.terminate(org, 'hubot', 42, datetime.now(timezone.utc)))

    def test_sign_without_document(self, store):
        with pytest.raises(ValueError):
            asyncio.run(JsonSignatureStore(store).sign(LinkedOrg(org='octo-org'), 'hubot', 42))
