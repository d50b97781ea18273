# The MIT License (MIT)
# Copyright © 2025 Entrius

"""
Validation engine.

Entry points, from narrowest to widest scope:
    validate_pull_request            one pull request
    validate_pull_requests           every open pull request of a repository
    validate_org_pull_requests       every repository of an organization, throttled
    validate_shared_document_items   every repository and org sharing a document
    sign / add_signature             record a signature and update affected pull requests
"""

from .context import ClaContext
from .linked_item import resolve_linked_item
from .organization import validate_org_pull_requests
from .pull_request import validate_pull_request
from .repository import validate_pull_requests
from .shared_document import validate_shared_document_items
from .signature import add_signature, count_signatures, has_signature, sign, terminate_signature, upload

__all__ = [
    'ClaContext',
    'resolve_linked_item',
    'validate_pull_request',
    'validate_pull_requests',
    'validate_org_pull_requests',
    'validate_shared_document_items',
    'sign',
    'add_signature',
    'has_signature',
    'terminate_signature',
    'upload',
    'count_signatures',
]
