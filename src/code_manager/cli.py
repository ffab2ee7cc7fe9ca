"""CLI entry point for code-manager."""

import logging
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from code_manager.config import get_default_config_path, load_config
from code_manager.core.manager import CodeManager
from code_manager.exceptions import CodeManagerError, HookExecutionError

console = Console()


def _fail(error: CodeManagerError) -> click.ClickException:
    message = str(error)
    if error.hook_error is not None:
        message = f"{message} (error hook also failed: {error.hook_error})"
    return click.ClickException(message)


def get_code_manager(ctx: click.Context) -> CodeManager:
    """
    Build a CodeManager from the group options.

    Returns:
        CodeManager instance wired to the loaded configuration.
    """
    config_path: Optional[str] = ctx.obj.get("config_path")
    manager = CodeManager(
        config=load_config(config_path),
        confirm=lambda question: click.confirm(question, default=False),
        config_path=Path(config_path) if config_path else get_default_config_path(),
    )
    manager.set_verbose(ctx.obj.get("verbose", False))
    return manager


@click.group()
@click.version_option(package_name="code-manager")
@click.option(
    "-c",
    "--config",
    "config_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Path to the TOML configuration file.",
)
@click.option("-v", "--verbose", is_flag=True, help="Show debug output.")
@click.pass_context
def main(ctx: click.Context, config_path: Optional[str], verbose: bool) -> None:
    """code-manager - clone repositories and juggle their worktrees.

    Clones land in a predictable layout under the repositories directory
    and every worktree is tracked in a status registry.
    """
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["verbose"] = verbose
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


@main.command("init")
@click.option("--base-path", default=None, help="Root directory for clones (default: ~/Code).")
@click.option("--repositories-dir", default=None, help="Directory for clones (default: <base-path>/repos).")
@click.option("--reset", is_flag=True, help="Forget every tracked repository first.")
@click.option("-f", "--force", is_flag=True, help="Reset without asking for confirmation.")
@click.pass_context
def init_command(
    ctx: click.Context,
    base_path: Optional[str],
    repositories_dir: Optional[str],
    reset: bool,
    force: bool,
) -> None:
    """Initialize code-manager.

    Example:
        cm init --base-path ~/src
        cm init --reset --force
    """
    manager = get_code_manager(ctx)
    if base_path is None and not reset:
        base_path = click.prompt("Base path", default=manager.config.base_path)

    try:
        config = manager.init(base_path, repositories_dir, reset=reset, force=force)
    except CodeManagerError as e:
        raise _fail(e) from e

    console.print("[bold green]Initialized code-manager[/bold green]")
    console.print(f"[bold]Base path:[/bold]    {config.base_path}")
    console.print(f"[bold]Repositories:[/bold] {config.repositories_dir}")


@main.command("clone")
@click.argument("url")
@click.option(
    "--no-recursive",
    is_flag=True,
    help="Do not clone submodules.",
)
@click.pass_context
def clone_command(ctx: click.Context, url: str, no_recursive: bool) -> None:
    """Clone a repository and start tracking it.

    Example:
        cm clone git@github.com:octocat/Hello-World.git
    """
    manager = get_code_manager(ctx)
    try:
        with console.status(f"[bold blue]Cloning {url}..."):
            path = manager.clone(url, recursive=not no_recursive)
    except CodeManagerError as e:
        raise _fail(e) from e

    console.print(f"[bold green]Cloned:[/bold green] {path}")


@main.command("create")
@click.argument("branch")
@click.option("-i", "--ide", "ide_name", default=None, help="Open the worktree in this IDE.")
@click.pass_context
def create_command(ctx: click.Context, branch: str, ide_name: Optional[str]) -> None:
    """Create a worktree for BRANCH.

    Example:
        cm create feature/login
        cm create feature/login --ide cursor
    """
    manager = get_code_manager(ctx)
    try:
        path = manager.create_worktree(branch, ide_name=ide_name)
    except HookExecutionError as e:
        if e.result is not None:
            console.print(f"[bold green]Worktree created:[/bold green] {e.result}")
        raise _fail(e) from e
    except CodeManagerError as e:
        raise _fail(e) from e

    console.print(f"[bold green]Worktree created:[/bold green] {path}")


@main.command("delete")
@click.argument("branch")
@click.option(
    "-f",
    "--force",
    is_flag=True,
    help="Force deletion even with uncommitted changes.",
)
@click.pass_context
def delete_command(ctx: click.Context, branch: str, force: bool) -> None:
    """Delete the worktree of BRANCH."""
    manager = get_code_manager(ctx)
    try:
        path = manager.delete_worktree(branch, force=force)
    except CodeManagerError as e:
        raise _fail(e) from e

    console.print(f"[bold green]Worktree deleted:[/bold green] {path}")


@main.command("delete-all")
@click.option("-f", "--force", is_flag=True, help="Force deletion even with uncommitted changes.")
@click.option("-y", "--yes", is_flag=True, help="Skip confirmation prompt.")
@click.pass_context
def delete_all_command(ctx: click.Context, force: bool, yes: bool) -> None:
    """Delete every worktree of the current repository."""
    if not yes and not click.confirm("Delete all worktrees of this repository?"):
        console.print("[yellow]Aborted.[/yellow]")
        return

    manager = get_code_manager(ctx)
    try:
        count = manager.delete_all_worktrees(force=force)
    except CodeManagerError as e:
        raise _fail(e) from e

    console.print(f"[bold green]Deleted {count} worktree(s)[/bold green]")


@main.command("list")
@click.option(
    "-f",
    "--force",
    is_flag=True,
    help="Use the first workspace file when several are present.",
)
@click.pass_context
def list_command(ctx: click.Context, force: bool) -> None:
    """List tracked worktrees of this repository or workspace."""
    manager = get_code_manager(ctx)
    try:
        worktrees = manager.list_worktrees(force=force)
    except CodeManagerError as e:
        raise _fail(e) from e

    if not worktrees:
        console.print("[yellow]No worktrees found.[/yellow]")
        return

    table = Table(title="Worktrees", show_header=True, header_style="bold cyan")
    table.add_column("Branch", style="green")
    table.add_column("Remote")
    table.add_column("Path")

    for wt in worktrees:
        table.add_row(wt.branch, wt.remote, wt.path)

    console.print(table)


@main.command("open")
@click.argument("branch")
@click.option("-i", "--ide", "ide_name", required=True, help="IDE to open the worktree in.")
@click.pass_context
def open_command(ctx: click.Context, branch: str, ide_name: str) -> None:
    """Open the worktree of BRANCH in an IDE."""
    manager = get_code_manager(ctx)
    try:
        path = manager.open_worktree(branch, ide_name)
    except CodeManagerError as e:
        raise _fail(e) from e

    console.print(f"[green]Opened {path} in {ide_name}[/green]")


@main.command("load")
@click.argument("branch_ref", metavar="[REMOTE:]BRANCH")
@click.option("-i", "--ide", "ide_name", default=None, help="Open the worktree in this IDE.")
@click.pass_context
def load_command(ctx: click.Context, branch_ref: str, ide_name: Optional[str]) -> None:
    """Create a worktree for a branch fetched from a remote.

    Example:
        cm load feature/login
        cm load alice:feature/login
    """
    manager = get_code_manager(ctx)
    try:
        with console.status(f"[bold blue]Loading {branch_ref}..."):
            path = manager.load_worktree(branch_ref, ide_name=ide_name)
    except HookExecutionError as e:
        if e.result is not None:
            console.print(f"[bold green]Worktree created:[/bold green] {e.result}")
        raise _fail(e) from e
    except CodeManagerError as e:
        raise _fail(e) from e

    console.print(f"[bold green]Worktree created:[/bold green] {path}")


@main.group("repos", invoke_without_command=True)
@click.pass_context
def repos_command(ctx: click.Context) -> None:
    """List tracked repositories.

    Example:
        cm repos
        cm repos delete github.com/octocat/Hello-World
    """
    if ctx.invoked_subcommand is not None:
        return

    manager = get_code_manager(ctx)
    try:
        repositories = manager.list_repositories()
    except CodeManagerError as e:
        raise _fail(e) from e

    if not repositories:
        console.print("[yellow]No repositories tracked.[/yellow]")
        return

    table = Table(title="Repositories", show_header=True, header_style="bold cyan")
    table.add_column("Repository", style="bold")
    table.add_column("Worktrees", justify="right")
    table.add_column("Path")

    for repo in repositories:
        path = repo.path if repo.in_repositories_dir else f"[yellow]{repo.path}[/yellow]"
        table.add_row(repo.identity, str(repo.worktree_count), path)

    console.print(table)


@repos_command.command("delete")
@click.argument("name")
@click.option(
    "-f",
    "--force",
    is_flag=True,
    help="Skip confirmation and force-remove worktrees with uncommitted changes.",
)
@click.pass_context
def repos_delete_command(ctx: click.Context, name: str, force: bool) -> None:
    """Delete a tracked repository and all of its worktrees.

    NAME is the repository identity or its clone URL. The clone directory
    is removed only when it lies inside the repositories directory.
    """
    manager = get_code_manager(ctx)
    try:
        path = manager.delete_repository(name, force=force)
    except CodeManagerError as e:
        raise _fail(e) from e

    console.print(f"[bold green]Repository deleted:[/bold green] {path}")


if __name__ == "__main__":
    main()
