"""CLI entry point for bitbucket-scm."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Annotated, NamedTuple

import typer
import yaml
from rich import print as rprint
from rich.logging import RichHandler
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table
from rich.tree import Tree

from bitbucket_scm.client.errors import BitbucketClientError
from bitbucket_scm.client.http import HttpClientFactory
from bitbucket_scm.config import PluginConfiguration, ValidationKind, load_config
from bitbucket_scm.config.loader import CONFIG_FILENAME, DEFAULT_CONFIG_TEMPLATE
from bitbucket_scm.credentials import EnvCredentialResolver
from bitbucket_scm.filesystem import FilesystemView, LightweightFilesystemProvider
from bitbucket_scm.git import GitCommandError
from bitbucket_scm.scm import (
    BuildContext,
    MirrorFetchError,
    MirrorFetchRequest,
    MirrorResolver,
    RepositoryResolution,
    RepositoryResolver,
    RevisionState,
    ScmConfig,
)

app = typer.Typer(
    name="bitbucket-scm",
    help="Resolve, browse and check out Bitbucket Server repositories for CI jobs.",
)

config_app = typer.Typer(help="Manage bitbucket-scm configuration.")
app.add_typer(config_app, name="config")

# Global state
_config: PluginConfiguration | None = None

_LEVELS = {"debug": logging.DEBUG, "info": logging.INFO, "warn": logging.WARNING, "error": logging.ERROR}


class _JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "time": self.formatTime(record),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload)


def _configure_logging(cfg: PluginConfiguration) -> None:
    if cfg.log_format == "json":
        handler: logging.Handler = logging.StreamHandler()
        handler.setFormatter(_JsonFormatter())
    else:
        handler = RichHandler(show_path=False)
    logging.basicConfig(level=_LEVELS[cfg.log_level], handlers=[handler], force=True)


def _get_config() -> PluginConfiguration:
    if _config is None:
        return load_config()
    return _config


@app.callback()
def main(
    config: Annotated[
        str | None, typer.Option("--config", "-c", help="Path to bitbucket-scm.yaml")
    ] = None,
) -> None:
    """Global options."""
    global _config
    try:
        _config = load_config(config)
    except ValueError as e:
        rprint(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    _configure_logging(_config)


class _Services(NamedTuple):
    resolver: RepositoryResolver
    mirrors: MirrorResolver
    filesystem: LightweightFilesystemProvider


def _services(cfg: PluginConfiguration) -> _Services:
    credentials = EnvCredentialResolver(cfg.credentials)
    factory = HttpClientFactory(cfg.http)
    mirrors = MirrorResolver(factory, credentials)
    return _Services(
        resolver=RepositoryResolver(cfg, factory, credentials, mirror_resolver=mirrors),
        mirrors=mirrors,
        filesystem=LightweightFilesystemProvider(cfg, factory, credentials),
    )


def _display_resolution(resolution: RepositoryResolution) -> None:
    ref = resolution.reference
    if resolution.is_placeholder:
        status = f"[yellow]placeholder[/yellow] ({resolution.reason.value})"
    else:
        status = "[green]resolved[/green]"
    panel_text = (
        f"[bold]{ref.project_key}/{ref.repository_slug}[/bold]\n\n"
        f"[dim]Status:[/dim]      {status}\n"
        f"[dim]Server:[/dim]      {ref.server_id or '-'}\n"
        f"[dim]Project:[/dim]     {ref.project_name} ({ref.project_key})\n"
        f"[dim]Repository:[/dim]  {ref.repository_name} ({ref.repository_slug})\n"
        f"[dim]Mirror:[/dim]      {ref.mirror_name or '(primary)'}\n"
        f"[dim]Clone:[/dim]       {resolution.clone_endpoint.protocol.value} "
        f"{resolution.clone_endpoint.url or '(none)'}\n"
        f"[dim]Browse:[/dim]      {resolution.repository_url or '-'}"
    )
    rprint(Panel(panel_text, title="Repository", border_style="blue"))


@app.command()
def servers() -> None:
    """List configured Bitbucket Server instances and their validation status."""
    cfg = _get_config()
    if not cfg.servers:
        rprint("[yellow]No servers configured.[/yellow]")
        raise typer.Exit(0)
    table = Table(title=f"Servers ({len(cfg.servers)})")
    table.add_column("Id", style="cyan")
    table.add_column("Name")
    table.add_column("Base URL", style="green")
    table.add_column("Status")
    styles = {ValidationKind.OK: "green", ValidationKind.WARNING: "yellow", ValidationKind.ERROR: "red"}
    for server in cfg.servers:
        result = server.validate_config()
        style = styles[result.kind]
        status = f"[{style}]{result.kind.value}[/{style}]"
        if result.message:
            status += f" {result.message}"
        table.add_row(server.id, server.name, server.base_url, status)
    rprint(table)


@app.command()
def resolve(
    server: str = typer.Option(..., "--server", "-s", help="Server id"),
    project: str = typer.Option(..., "--project", "-p", help="Project name or ~user key"),
    repo: str = typer.Option(..., "--repo", "-r", help="Repository name"),
    mirror: str = typer.Option("", "--mirror", "-m", help="Mirror name"),
    credential: str | None = typer.Option(None, "--credential", help="HTTP credential id"),
    ssh_credential: str | None = typer.Option(None, "--ssh-credential", help="SSH credential id"),
) -> None:
    """Resolve a repository and show its clone endpoint."""
    cfg = _get_config()
    resolution = _services(cfg).resolver.resolve(
        server, project, repo, mirror, credential, ssh_credential
    )
    _display_resolution(resolution)
    if resolution.is_placeholder:
        raise typer.Exit(1)


@app.command()
def mirrors(
    server: str = typer.Option(..., "--server", "-s", help="Server id"),
    project: str = typer.Option(..., "--project", "-p", help="Project name"),
    repo: str = typer.Option(..., "--repo", "-r", help="Repository name"),
    credential: str | None = typer.Option(None, "--credential", help="Credential id"),
) -> None:
    """List mirrors currently serving a repository."""
    cfg = _get_config()
    server_cfg = cfg.get_server_by_id(server)
    if server_cfg is None:
        rprint(f"[red]Error:[/red] unknown server {server!r}")
        raise typer.Exit(1)
    request = MirrorFetchRequest(
        server_url=server_cfg.base_url,
        credential_id=credential,
        global_credential_id=server_cfg.admin_credential_id,
        project_name=project,
        repository_name=repo,
    )
    try:
        names = _services(cfg).mirrors.list_available_mirrors(request)
    except MirrorFetchError as e:
        rprint(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    if not names:
        rprint(f"[yellow]No available mirrors for {project}/{repo}.[/yellow]")
        return
    for name in names:
        rprint(f"  - {name}")


def _lightweight_view(
    cfg: PluginConfiguration, server: str, project: str, repo: str, ref: str, credential: str | None
) -> FilesystemView:
    services = _services(cfg)
    adapter = services.resolver.build_adapter(
        ScmConfig(
            branches=[ref],
            credential_id=credential,
            project_name=project,
            repository_name=repo,
            server_id=server,
        )
    )
    view = services.filesystem.build(adapter)
    if view is None:
        rprint(
            f"[yellow]Lightweight checkout not possible for {project}/{repo} at {ref}.[/yellow] "
            "Use a fully qualified refs/heads/ or refs/tags/ ref on a valid server."
        )
        raise typer.Exit(2)
    return view


@app.command()
def ls(
    path: str = typer.Argument("", help="Directory inside the repository"),
    server: str = typer.Option(..., "--server", "-s", help="Server id"),
    project: str = typer.Option(..., "--project", "-p", help="Project name"),
    repo: str = typer.Option(..., "--repo", "-r", help="Repository name"),
    ref: str = typer.Option(..., "--ref", help="Fully qualified ref, e.g. refs/heads/master"),
    credential: str | None = typer.Option(None, "--credential", help="Credential id"),
) -> None:
    """List a directory without cloning."""
    cfg = _get_config()
    with _lightweight_view(cfg, server, project, repo, ref, credential) as view:
        node = view.child(path) if path else view.root()
        try:
            children = node.children()
        except (FileNotFoundError, NotADirectoryError, BitbucketClientError) as e:
            rprint(f"[red]Error:[/red] {e}")
            raise typer.Exit(1)
        tree = Tree(f"[bold]{node.path or '/'}[/bold] @ {view.ref}")
        for child in sorted(children, key=lambda c: (c.kind != "directory", c.name)):
            if child.kind == "directory":
                tree.add(f"[blue]{child.name}/[/blue]")
            else:
                tree.add(child.name)
        rprint(tree)


@app.command()
def cat(
    path: str = typer.Argument(..., help="File inside the repository"),
    server: str = typer.Option(..., "--server", "-s", help="Server id"),
    project: str = typer.Option(..., "--project", "-p", help="Project name"),
    repo: str = typer.Option(..., "--repo", "-r", help="Repository name"),
    ref: str = typer.Option(..., "--ref", help="Fully qualified ref, e.g. refs/heads/master"),
    credential: str | None = typer.Option(None, "--credential", help="Credential id"),
) -> None:
    """Print a file without cloning."""
    cfg = _get_config()
    with _lightweight_view(cfg, server, project, repo, ref, credential) as view:
        try:
            content = view.child(path).read_text()
        except (FileNotFoundError, IsADirectoryError, BitbucketClientError, UnicodeDecodeError) as e:
            rprint(f"[red]Error:[/red] {e}")
            raise typer.Exit(1)
        typer.echo(content, nl=False)


@app.command()
def checkout(
    workspace: Path = typer.Argument(..., help="Directory to check out into"),
    server: str = typer.Option(..., "--server", "-s", help="Server id"),
    project: str = typer.Option(..., "--project", "-p", help="Project name"),
    repo: str = typer.Option(..., "--repo", "-r", help="Repository name"),
    branch: list[str] = typer.Option(["refs/heads/master"], "--branch", "-b", help="Branch spec"),
    mirror: str = typer.Option("", "--mirror", "-m", help="Mirror name"),
    credential: str | None = typer.Option(None, "--credential", help="HTTP credential id"),
    ssh_credential: str | None = typer.Option(None, "--ssh-credential", help="SSH credential id"),
    changelog: Path | None = typer.Option(None, "--changelog", help="Write changelog here"),
    since: str | None = typer.Option(None, "--since", help="Baseline commit for the changelog"),
) -> None:
    """Resolve the repository and do a full git checkout."""
    cfg = _get_config()
    adapter = _services(cfg).resolver.build_adapter(
        ScmConfig(
            branches=branch,
            credential_id=credential,
            ssh_credential_id=ssh_credential,
            project_name=project,
            repository_name=repo,
            server_id=server,
            mirror_name=mirror,
        )
    )
    if adapter.repository.is_placeholder:
        _display_resolution(adapter.repository)
        rprint("[red]Error:[/red] repository could not be resolved")
        raise typer.Exit(1)

    baseline = None
    if since:
        baseline = RevisionState(commit=since)
    try:
        revision = adapter.checkout(BuildContext(), workspace, changelog, baseline)
    except GitCommandError as e:
        rprint(f"[red]Checkout failed:[/red] {e}")
        raise typer.Exit(1)
    rprint(
        Panel(
            f"[dim]Workspace:[/dim]  {workspace}\n"
            f"[dim]Ref:[/dim]        {revision.branch}\n"
            f"[dim]Commit:[/dim]     {revision.commit}",
            title="Checkout Complete",
            border_style="green",
        )
    )


@config_app.command("show")
def config_show() -> None:
    """Show current resolved configuration."""
    cfg = _get_config()
    rprint(Syntax(yaml.dump(cfg.model_dump(mode="json"), default_flow_style=False), "yaml"))


@config_app.command("init")
def config_init(
    force: bool = typer.Option(False, "--force", help="Overwrite existing config"),
) -> None:
    """Create default bitbucket-scm.yaml in current directory."""
    target = Path(CONFIG_FILENAME)
    if target.exists() and not force:
        rprint(f"[yellow]{CONFIG_FILENAME} already exists.[/yellow] Use --force to overwrite.")
        raise typer.Exit(1)
    target.write_text(DEFAULT_CONFIG_TEMPLATE)
    rprint(f"[green]Created[/green] {target}")


if __name__ == "__main__":
    app()
