#!/usr/bin/env python3
# SPDX-License-Identifier: BSD-3-Clause
# Copyright (c) 2025-2026 @yosagi
"""ccforest - Claude Code conversation tree inspector

Parse a session log, check its integrity, show its message forest,
the active branch, and cost/token statistics.
"""

import json
import logging
import sys
from typing import List, Optional, Tuple

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table
from rich.tree import Tree

from .branch import branch_messages, select_active_branch, select_summary_branches
from .config import Config
from .entries import DecodeFailure
from .errors import CCForestError
from .loader import Conversation, parse_file
from .projects import SessionLocator
from .stats import compute_stats
from .tree import ConversationTree, build_tree
from .validator import validate

console = Console()
err_console = Console(stderr=True)

SNIPPET_LENGTH = 60


def _setup_logging(verbose: bool):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format='%(message)s',
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True
    )


def _source_options(func):
    func = click.option('--session', '-s', default=None,
                        help='Session ID (prefix match) instead of FILE')(func)
    func = click.argument('file', required=False, type=click.Path(dir_okay=False))(func)
    return func


def _fail(message: str):
    err_console.print(f"[red]Error: {escape(message)}[/red]")
    sys.exit(1)


def _load(config: Config, file: Optional[str],
          session: Optional[str]) -> Tuple[Conversation, List[DecodeFailure]]:
    """Parse FILE or the file of --session"""
    if file and session:
        raise click.UsageError('Give either FILE or --session, not both')
    if not file and not session:
        raise click.UsageError('Give FILE or --session')

    try:
        if session:
            session_file = SessionLocator(config.projects_dir).find_session(session)
            logging.getLogger(__name__).debug("Session %s -> %s", session, session_file.path)
            file = str(session_file.path)
        return parse_file(file)
    except CCForestError as e:
        _fail(str(e))


def _exit_if_strict(config: Config, problems: int):
    if config.strict and problems:
        err_console.print(f"[yellow]Strict mode: {problems} problem(s)[/yellow]")
        sys.exit(1)


def _wants_json(config: Config, as_json: bool) -> bool:
    return as_json or config.output_format == 'json'


def _node_label(tree: ConversationTree, uuid: str) -> str:
    message = tree.nodes[uuid]
    text = getattr(message, 'text', '').replace('\n', ' ').strip()
    if len(text) > SNIPPET_LENGTH:
        text = text[:SNIPPET_LENGTH] + '...'

    color = 'cyan' if message.entry_type == 'user' else 'green'
    label = f"[{color}]{message.entry_type}[/{color}] {uuid[:8]} [dim]{message.timestamp or '-'}[/dim]"
    if message.is_sidechain:
        label += ' [magenta]sidechain[/magenta]'
    if uuid in tree.orphans:
        label += ' [yellow]orphan[/yellow]'
    if uuid in tree.cycle_broken:
        label += ' [red]cycle cut[/red]'
    if text:
        label += f" {escape(text)}"
    return label


def _render_tree(tree: ConversationTree, title: str) -> Tree:
    rendered = Tree(escape(title))
    stack = [(uuid, rendered) for uuid in reversed(tree.roots)]
    while stack:
        uuid, parent_node = stack.pop()
        node = parent_node.add(_node_label(tree, uuid))
        stack.extend((child, node) for child in reversed(tree.children(uuid)))
    return rendered


@click.group()
@click.option('--verbose', '-v', is_flag=True, help='Verbose logging')
@click.option('--config-file', type=click.Path(exists=True), help='Config file path')
@click.option('--projects-dir', default=None, help='Claude projects directory')
@click.option('--strict', is_flag=True,
              help='Exit 1 when decode failures or findings are present')
@click.pass_context
def cli(ctx, verbose: bool, config_file: Optional[str],
        projects_dir: Optional[str], strict: bool):
    """Claude Code conversation tree inspector"""
    config = Config(config_file=config_file, projects_dir=projects_dir,
                    verbose=verbose, strict=True if strict else None)
    _setup_logging(config.verbose)
    ctx.obj = config


@cli.command('parse')
@_source_options
@click.option('--json', 'as_json', is_flag=True, help='Output in JSON format')
@click.pass_obj
def parse_command(config: Config, file: Optional[str], session: Optional[str], as_json: bool):
    """Decode a conversation and report failed lines"""
    conversation, failures = _load(config, file, session)

    if _wants_json(config, as_json):
        click.echo(json.dumps({
            'summaries': len(conversation.summaries),
            'userMessages': len(conversation.user_messages),
            'assistantMessages': len(conversation.assistant_messages),
            'sessionIds': conversation.session_ids,
            'failures': [
                {'line': f.line_number, 'reason': f.reason.value, 'detail': f.detail}
                for f in failures
            ],
        }, ensure_ascii=False, indent=2))
    else:
        console.print(f"Summaries: {len(conversation.summaries)}")
        console.print(f"User messages: {len(conversation.user_messages)}")
        console.print(f"Assistant messages: {len(conversation.assistant_messages)}")
        console.print(f"Sessions: {', '.join(conversation.session_ids) or 'N/A'}")
        if failures:
            console.print(f"[yellow]Decode failures ({len(failures)}):[/yellow]")
            for failure in failures:
                console.print(f"  {escape(failure.describe())}")

    _exit_if_strict(config, len(failures))


@cli.command('validate')
@_source_options
@click.option('--json', 'as_json', is_flag=True, help='Output in JSON format')
@click.pass_obj
def validate_command(config: Config, file: Optional[str], session: Optional[str], as_json: bool):
    """Check UUIDs, parent links, cycles, timestamps and tool-use IDs"""
    conversation, failures = _load(config, file, session)
    findings = validate(conversation)

    if _wants_json(config, as_json):
        click.echo(json.dumps(
            [{'kind': f.kind, 'description': f.describe()} for f in findings],
            ensure_ascii=False, indent=2
        ))
    elif not findings:
        console.print('[green]No findings[/green]')
    else:
        table = Table(title=f"Findings ({len(findings)})")
        table.add_column('Kind', style='yellow')
        table.add_column('Description')
        for finding in findings:
            table.add_row(finding.kind, escape(finding.describe()))
        console.print(table)

    _exit_if_strict(config, len(failures) + len(findings))


@cli.command('tree')
@_source_options
@click.pass_obj
def tree_command(config: Config, file: Optional[str], session: Optional[str]):
    """Show the message forest"""
    conversation, _ = _load(config, file, session)
    tree = build_tree(conversation.messages)
    title = f"{file or session} ({len(tree)} messages, {len(tree.roots)} roots)"
    console.print(_render_tree(tree, title))


@cli.command('branch')
@_source_options
@click.option('--leaf', default=None, help='Leaf UUID hint')
@click.option('--summaries', 'per_summary', is_flag=True,
              help='Resolve the branch of every summary entry')
@click.option('--json', 'as_json', is_flag=True, help='Output in JSON format')
@click.pass_obj
def branch_command(config: Config, file: Optional[str], session: Optional[str],
                   leaf: Optional[str], per_summary: bool, as_json: bool):
    """Show the active branch"""
    conversation, _ = _load(config, file, session)
    tree = build_tree(conversation.messages)

    if per_summary:
        branches = select_summary_branches(tree, conversation.summaries)
    else:
        if leaf is None and config.follow_summary_hint and conversation.leaf_hints:
            leaf = conversation.leaf_hints[-1]
        branches = {leaf or '': select_active_branch(tree, leaf)}

    if _wants_json(config, as_json):
        click.echo(json.dumps(branches if per_summary else next(iter(branches.values())),
                              ensure_ascii=False, indent=2))
        return

    for hint, branch in branches.items():
        if per_summary:
            console.print(f"[bold]Summary leaf {hint[:8]}[/bold]")
        if not branch:
            console.print('(empty)')
        for message in branch_messages(tree, branch):
            console.print(f"  {_node_label(tree, message.uuid)}")


@cli.command('stats')
@_source_options
@click.option('--branch', 'active_only', is_flag=True, help='Only the active branch')
@click.option('--json', 'as_json', is_flag=True, help='Output in JSON format')
@click.pass_obj
def stats_command(config: Config, file: Optional[str], session: Optional[str],
                  active_only: bool, as_json: bool):
    """Show cost, token and response time totals"""
    conversation, _ = _load(config, file, session)

    messages = conversation.messages
    if active_only:
        tree = build_tree(messages)
        hint = conversation.leaf_hints[-1] if config.follow_summary_hint and conversation.leaf_hints else None
        messages = branch_messages(tree, select_active_branch(tree, hint))

    stats = compute_stats(messages)
    if _wants_json(config, as_json):
        click.echo(json.dumps(stats.to_dict(), ensure_ascii=False, indent=2))
        return

    table = Table(title='Stats', show_header=False)
    table.add_column('Metric', style='cyan')
    table.add_column('Value', justify='right')
    table.add_row('Cost (USD)', f"{stats.total_cost_usd:.4f}")
    table.add_row('Input tokens', str(stats.total_tokens.input))
    table.add_row('Output tokens', str(stats.total_tokens.output))
    table.add_row('Cache creation tokens', str(stats.total_tokens.cache_creation))
    table.add_row('Cache read tokens', str(stats.total_tokens.cache_read))
    table.add_row('Avg response (ms)', f"{stats.average_response_time_ms:.0f}")
    table.add_row('User messages', str(stats.message_count.user))
    table.add_row('Assistant messages', str(stats.message_count.assistant))
    for model, count in sorted(stats.models.items()):
        table.add_row(f"Model {escape(model)}", str(count))
    console.print(table)


@cli.command()
@click.option('--json', 'as_json', is_flag=True, help='Output in JSON format')
@click.pass_obj
def projects(config: Config, as_json: bool):
    """List projects"""
    project_list = SessionLocator(config.projects_dir).list_projects()

    if _wants_json(config, as_json):
        click.echo(json.dumps([p.name for p in project_list], ensure_ascii=False, indent=2))
        return
    if not project_list:
        console.print('No projects found')
        return

    console.print(f"Projects ({len(project_list)}):")
    for project_dir in project_list:
        cwd = SessionLocator.read_cwd(next(project_dir.glob('*.jsonl')))
        console.print(f"  {escape(project_dir.name)}  [dim]{escape(cwd or '')}[/dim]")


@cli.command()
@click.option('--project', '-p', required=True, help='Project directory name')
@click.option('--json', 'as_json', is_flag=True, help='Output in JSON format')
@click.pass_obj
def sessions(config: Config, project: str, as_json: bool):
    """List sessions in a project"""
    session_list = SessionLocator(config.projects_dir).list_sessions(project)

    if _wants_json(config, as_json):
        click.echo(json.dumps(
            [{'session_id': s.session_id, 'path': str(s.path)} for s in session_list],
            ensure_ascii=False, indent=2
        ))
        return
    if not session_list:
        console.print(f"No sessions found: {escape(project)}")
        return

    console.print(f"Sessions ({len(session_list)}):")
    for session in session_list:
        console.print(f"  {session.session_id}")


def main():
    cli()


if __name__ == '__main__':
    main()
