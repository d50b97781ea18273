# The MIT License (MIT)
# Copyright © 2025 Entrius

"""GitHub REST implementations of the document-check, version-control and status/comment collaborators."""

from .checks import GitHubDocumentCheck
from .status import GitHubStatusService, render_comment
from .version_control import GitHubVersionControl

__all__ = ['GitHubDocumentCheck', 'GitHubStatusService', 'GitHubVersionControl', 'render_comment']
