# The MIT License (MIT)
# Copyright © 2025 Entrius

"""
Shared helpers for CLI commands
"""

import os
import re
from pathlib import Path
from typing import Iterable, Optional, Tuple

import click
from rich.console import Console
from rich.table import Table

from claguard.classes import BatchResult, PullRequestOutcome
from claguard.github import GitHubDocumentCheck, GitHubStatusService, GitHubVersionControl
from claguard.storage.json_store import JsonEntityStore, JsonFileStore, JsonSignatureStore, JsonUserStore
from claguard.validator.context import ClaContext
from claguard.validator.utils.config import DEFAULT_CONFIG, ValidationConfig

REPO_PATTERN = re.compile(r'^[a-zA-Z0-9._-]+/[a-zA-Z0-9._-]+$')
ORG_PATTERN = re.compile(r'^[a-zA-Z0-9._-]+$')

# Default paths
CLAGUARD_DIR = Path.home() / '.claguard'
DEFAULT_STORE_FILE = CLAGUARD_DIR / 'store.json'

# Outcome display colors
OUTCOME_COLORS = {
    PullRequestOutcome.SIGNED: 'green',
    PullRequestOutcome.NOT_SIGNED: 'yellow',
    PullRequestOutcome.NOT_REQUIRED: 'dim',
    PullRequestOutcome.NULL_CLA: 'dim',
    PullRequestOutcome.CHECK_FAILED: 'red',
}

console = Console()


def get_store_path(store: Optional[str]) -> Path:
    """Resolve the store file: explicit option, then CLAGUARD_STORE, then ~/.claguard/store.json."""
    if store:
        return Path(store)
    env_store = os.getenv('CLAGUARD_STORE')
    if env_store:
        return Path(env_store)
    return DEFAULT_STORE_FILE


def build_context(store: Optional[str], config: Optional[ValidationConfig] = None) -> ClaContext:
    """Wire the JSON stores and the GitHub collaborators into an engine context."""
    file_store = JsonFileStore(get_store_path(store))
    signatures = JsonSignatureStore(file_store)
    return ClaContext(
        checks=GitHubDocumentCheck(signatures),
        signatures=signatures,
        vcs=GitHubVersionControl(),
        status=GitHubStatusService(),
        entities=JsonEntityStore(file_store),
        users=JsonUserStore(file_store),
        config=config or DEFAULT_CONFIG,
    )


def parse_repository(value: str) -> Tuple[str, str]:
    """Split 'owner/repo' into (repo, owner).

    Raises:
        click.BadParameter: If the value is not in owner/repo format.
    """
    if not REPO_PATTERN.match(value or ''):
        raise click.BadParameter(f'Invalid repository format: {value!r}. Expected owner/repo')
    owner, repo = value.split('/', 1)
    return repo, owner


def parse_scope(value: str) -> Tuple[Optional[str], Optional[str], Optional[str]]:
    """Parse 'owner/repo' or 'org' into (repo, owner, org)."""
    if '/' in (value or ''):
        repo, owner = parse_repository(value)
        return repo, owner, None
    if not ORG_PATTERN.match(value or ''):
        raise click.BadParameter(f'Invalid org name: {value!r}')
    return None, None, value


def colorize_outcome(outcome: PullRequestOutcome) -> str:
    color = OUTCOME_COLORS.get(outcome, 'white')
    return f'[{color}]{outcome.value}[/{color}]'


def batch_table(results: Iterable[BatchResult]) -> Table:
    """One row per pull request of the given batch results."""
    table = Table(show_header=True)
    table.add_column('Repository', style='cyan')
    table.add_column('PR', justify='right')
    table.add_column('Outcome')

    for batch in results:
        for number, outcome in sorted(batch.outcomes.items()):
            table.add_row(f'{batch.owner}/{batch.repo}', f'#{number}', colorize_outcome(outcome))
        for error in batch.errors:
            table.add_row(f'{batch.owner}/{batch.repo}', '', f'[red]{error}[/red]')
    return table


def print_success(message: str) -> None:
    """Print a standardized success message."""
    console.print(f'\n  [green]✓[/green] {message}\n')


def print_error(message: str) -> None:
    """Print a standardized error message."""
    console.print(f'\n  [red]✗[/red] {message}\n')
