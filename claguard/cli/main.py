# The MIT License (MIT)
# Copyright © 2025 Entrius

"""
claguard CLI - Main entry point

Usage:
    claguard validate-pr owner/repo 12       - Synchronize one pull request (alias: pr)
    claguard validate-repo owner/repo        - All open pull requests of a repository (alias: repo)
    claguard validate-org org                - All repositories of an org, throttled (alias: org)
    claguard validate-shared owner/repo|org  - Everything sharing the item's CLA document (alias: shared)
    claguard sign owner/repo|org --user u    - Record a signature and update waiting pull requests
    claguard upload owner/repo|org u1 u2     - Record signatures for existing signers
    claguard check owner/repo|org --user u   - Check whether a user signed
    claguard count owner/repo|org            - Number of signatures of the current document
    claguard terminate owner/repo|org ...    - End a signature
"""

import asyncio
from datetime import datetime, timezone
from typing import Optional

import click
from rich.table import Table

from claguard import __version__, validator
from claguard.classes import PullRequestRef
from claguard.cli.helpers import (
    batch_table,
    build_context,
    colorize_outcome,
    console,
    parse_repository,
    parse_scope,
    print_error,
    print_success,
)
from claguard.exceptions import ClaError, UpstreamLookupError
from claguard.utils.logging import setup_events_logger
from claguard.validator.utils.config import DEFAULT_CONFIG, ValidationConfig


class AliasGroup(click.Group):
    """Click Group with short aliases listed next to their command in the help text."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._aliases = {}  # alias -> command name

    def add_alias(self, name, alias):
        self._aliases[alias] = name

    def get_command(self, ctx, cmd_name):
        return super().get_command(ctx, self._aliases.get(cmd_name, cmd_name))

    def format_commands(self, ctx, formatter):
        aliases_by_command = {}
        for alias, name in self._aliases.items():
            aliases_by_command.setdefault(name, []).append(alias)

        rows = []
        for name in self.list_commands(ctx):
            cmd = self.commands.get(name)
            if cmd is None or cmd.hidden:
                continue
            label = name
            if name in aliases_by_command:
                label = f"{name}, {', '.join(sorted(aliases_by_command[name]))}"
            rows.append((label, cmd.get_short_help_str(limit=150)))

        if rows:
            with formatter.section('Commands'):
                formatter.write_dl(rows)


def run(coro):
    """Run an engine coroutine, turning engine errors into a CLI error."""
    try:
        return asyncio.run(coro)
    except (ClaError, LookupError) as e:
        print_error(str(e))
        raise click.ClickException(f'{type(e).__name__}: {e}')


store_option = click.option(
    '--store', default=None, help='Path of the JSON store (default: $CLAGUARD_STORE or ~/.claguard/store.json)'
)
token_option = click.option(
    '--token', envvar='GITHUB_TOKEN', default=None, help='GitHub token, defaults to the linked item token'
)


@click.group(cls=AliasGroup)
@click.version_option(version=__version__, prog_name='claguard')
@click.option(
    '--events-dir',
    envvar='CLAGUARD_EVENTS_DIR',
    type=click.Path(file_okay=False, exists=True),
    default=None,
    help='Directory for the rotating events.log of validation summaries',
)
def cli(events_dir: Optional[str]):
    """claguard CLI - CLA checks and pull request status synchronization"""
    if events_dir:
        setup_events_logger(events_dir)


@cli.command('validate-pr')
@click.argument('repository')
@click.argument('number', type=int)
@store_option
@token_option
def validate_pr(repository: str, number: int, store: Optional[str], token: Optional[str]):
    """Synchronize the CLA status and comment of one pull request.

    \b
    Example:
        claguard validate-pr octocat/Hello-World 1347
    """
    repo, owner = parse_repository(repository)
    ctx = build_context(store)

    async def _validate():
        item = await validator.resolve_linked_item(ctx, repo=repo, owner=owner)
        pull = PullRequestRef(repo=repo, owner=owner, number=number)
        return await validator.validate_pull_request(ctx, pull, item, token)

    outcome = run(_validate())
    console.print(f'{repository}#{number}: {colorize_outcome(outcome)}')


@cli.command('validate-repo')
@click.argument('repository')
@store_option
@token_option
def validate_repo(repository: str, store: Optional[str], token: Optional[str]):
    """Synchronize every open pull request of a repository.

    \b
    Example:
        claguard validate-repo octocat/Hello-World
    """
    repo, owner = parse_repository(repository)
    ctx = build_context(store)

    result = run(validator.validate_pull_requests(ctx, repo, owner, token=token))

    console.print(batch_table([result]))
    if result.errors:
        print_error(f'{len(result.errors)} of {result.attempted} pull requests failed')
    else:
        print_success(f'{len(result.outcomes)} pull requests synchronized')


@cli.command('validate-org')
@click.argument('org')
@click.option('--time-to-wait', type=int, default=None, help='Delay between blocks in milliseconds')
@click.option('--block-size', type=int, default=None, help='Repositories validated per block')
@store_option
@token_option
def validate_org(org: str, time_to_wait: Optional[int], block_size: Optional[int], store: Optional[str], token: Optional[str]):
    """Synchronize the open pull requests of every repository of an org.

    \b
    Example:
        claguard validate-org my-org --time-to-wait 1000
    """
    try:
        config = ValidationConfig(
            time_to_wait=DEFAULT_CONFIG.time_to_wait if time_to_wait is None else time_to_wait,
            block_size=DEFAULT_CONFIG.block_size if block_size is None else block_size,
        )
    except ValueError as e:
        raise click.BadParameter(str(e))
    ctx = build_context(store, config)

    async def _validate():
        task = await validator.validate_org_pull_requests(ctx, org, token=token)
        return await task

    result = run(_validate())

    console.print(batch_table(result.repositories))
    if result.excluded:
        console.print(f"[dim]Excluded: {', '.join(result.excluded)}[/dim]")
    if result.overridden:
        console.print(f"[dim]With their own CLA: {', '.join(result.overridden)}[/dim]")
    for error in result.errors:
        console.print(f'[red]{error}[/red]')
    print_success(
        f'{result.pull_requests} pull requests in {len(result.repositories)} repositories ({result.blocks} blocks)'
    )


@cli.command('validate-shared')
@click.argument('scope')
@store_option
def validate_shared(scope: str, store: Optional[str]):
    """Synchronize every repository and org sharing the CLA document of SCOPE.

    \b
    Example:
        claguard validate-shared octocat/Hello-World
    """
    repo, owner, org = parse_scope(scope)
    ctx = build_context(store)

    async def _validate():
        item = await validator.resolve_linked_item(ctx, repo=repo, owner=owner, org=org)
        if item is None:
            raise UpstreamLookupError(f'Nothing linked for {scope}')
        return await validator.validate_shared_document_items(ctx, item.document, origin=item)

    result = run(_validate())

    console.print(batch_table(result.repositories + [r for o in result.organizations for r in o.repositories]))
    for error in result.errors:
        console.print(f'[red]{error}[/red]')
    print_success(f'{len(result.repositories)} repositories and {len(result.organizations)} orgs revalidated')


@cli.command('sign')
@click.argument('scope')
@click.option('--user', 'login', required=True, help='GitHub login of the signer')
@click.option('--user-id', type=int, default=None, help='GitHub user id, looked up when omitted')
@click.option('--custom-fields', default=None, help='JSON encoded custom fields')
@store_option
@token_option
def sign(scope: str, login: str, user_id: Optional[int], custom_fields: Optional[str], store: Optional[str], token: Optional[str]):
    """Sign the CLA of SCOPE (owner/repo or org) for a user.

    \b
    Example:
        claguard sign octocat/Hello-World --user octocat --user-id 583231
    """
    repo, owner, org = parse_scope(scope)
    ctx = build_context(store)

    async def _sign():
        uid = user_id
        if uid is None:
            github_user = await ctx.vcs.get_user(login, token)
            if not github_user:
                raise UpstreamLookupError(f'GitHub user {login} not found')
            uid = github_user['id']
        user = {'login': login, 'id': uid, 'token': token}
        return await validator.sign(ctx, user, repo=repo, owner=owner, org=org, custom_fields=custom_fields)

    result = run(_sign())

    table = Table(show_header=False)
    table.add_column('Field', style='cyan')
    table.add_column('Value', style='green')
    table.add_row('Signer', login)
    table.add_row('Document version', str(result.signature.document_version))
    table.add_row('Pull requests updated', str(result.targeted_updates))
    table.add_row('Stale cache entries pruned', str(result.pruned_requests))
    table.add_row('Full revalidation', result.fallback or '-')
    console.print(table)
    print_success(f'{login} signed the CLA of {scope}')


@cli.command('upload')
@click.argument('scope')
@click.argument('users', nargs=-1)
@store_option
@token_option
def upload(scope: str, users, store: Optional[str], token: Optional[str]):
    """Record signatures of existing signers for SCOPE.

    \b
    Example:
        claguard upload my-org alice bob
    """
    repo, owner, org = parse_scope(scope)
    ctx = build_context(store)

    signed = run(validator.upload(ctx, list(users), repo=repo, owner=owner, org=org, token=token))
    skipped = [u for u in users if u.lower() not in {s.lower() for s in signed}]
    if skipped:
        console.print(f"[yellow]Skipped: {', '.join(skipped)}[/yellow]")
    print_success(f'{len(signed)}/{len(users)} signatures uploaded')


@cli.command('check')
@click.argument('scope')
@click.option('--user', 'login', required=True, help='GitHub login to check')
@store_option
def check(scope: str, login: str, store: Optional[str]):
    """Check whether a user signed the CLA governing SCOPE."""
    repo, owner, org = parse_scope(scope)
    ctx = build_context(store)

    result = run(validator.has_signature(ctx, login, repo=repo, owner=owner, org=org))
    if result.signed:
        print_success(f'{login} signed the CLA of {scope}')
    else:
        console.print(f'\n  [yellow]{login} has not signed the CLA of {scope}[/yellow]\n')


@cli.command('count')
@click.argument('scope')
@store_option
def count(scope: str, store: Optional[str]):
    """Number of signatures for the current CLA document of SCOPE."""
    repo, owner, org = parse_scope(scope)
    ctx = build_context(store)

    total = run(validator.count_signatures(ctx, repo=repo, owner=owner, org=org))
    console.print(f'{scope}: [bold]{total}[/bold] signatures')


@cli.command('terminate')
@click.argument('scope')
@click.option('--user', 'login', required=True, help='GitHub login of the signer')
@click.option('--user-id', type=int, required=True, help='GitHub user id of the signer')
@click.option('--end-date', type=click.DateTime(), default=None, help='End of the signature (default: now, UTC)')
@store_option
def terminate(scope: str, login: str, user_id: int, end_date: Optional[datetime], store: Optional[str]):
    """End the CLA signature of a user for SCOPE."""
    repo, owner, org = parse_scope(scope)
    ctx = build_context(store)

    end_date = end_date or datetime.now(timezone.utc)
    run(validator.terminate_signature(ctx, login, user_id, end_date, repo=repo, owner=owner, org=org))
    print_success(f'Signature of {login} for {scope} ends {end_date.isoformat()}')


cli.add_alias('validate-pr', 'pr')
cli.add_alias('validate-repo', 'repo')
cli.add_alias('validate-org', 'org')
cli.add_alias('validate-shared', 'shared')


def main():
    """Main entry point for the CLI"""
    cli()


if __name__ == '__main__':
    main()
