# The MIT License (MIT)
# Copyright © 2025 Entrius

"""Error taxonomy of the validation engine."""


class ClaError(Exception):
    """Base class for all claguard errors."""


class ValidationError(ClaError):
    """Required identifying fields (repo/owner or org, document) are missing.

    Raised before any network call is made.
    """


class UpstreamLookupError(ClaError):
    """Entity resolution or enumeration against a collaborator failed."""


class CheckBoundaryError(ClaError):
    """The document-check collaborator failed for a pull request."""


class SignatureConflictError(ClaError):
    """The user already holds a signature for this scope and document version."""


class StatusUpdateError(ClaError):
    """Writing a commit status or the CLA comment to the provider failed."""
