"""
Toolwarden CLI

Command-line interface for toolwarden.

Commands:
    toolwarden run "task"               Run an agent session in the workspace
    toolwarden run --policy read-only   Same, with a stricter policy
    toolwarden tools                    List the tools advertised to the model
    toolwarden status                   Show version, settings and dependencies

Exit status of ``run``: 0 when the session finishes, 1 when it fails.
"""

from __future__ import annotations

import asyncio
import importlib
import os
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from toolwarden import __version__
from toolwarden.agent.loop import AgentLoop
from toolwarden.audit.trace_logger import AuditLog
from toolwarden.config import Settings, load_settings
from toolwarden.core.models import GateDecision, SessionStatus
from toolwarden.exceptions import ConfigurationError, ToolwardenError
from toolwarden.logging import configure_logging
from toolwarden.providers import create_provider
from toolwarden.tools.builtin import register_all_builtins
from toolwarden.tools.confirmation import ConsoleConfirmationPrompt
from toolwarden.tools.policy import SecurityPolicy
from toolwarden.tools.registry import ToolRegistry
from toolwarden.tools.sandbox import ProcessRunner, RunnerConfig, Workspace
from toolwarden.tools.user_defined import register_user_tools

POLICY_CHOICES = ["read-only", "confirm-writes", "confirm-all", "disabled"]

_DECISION_STYLE = {
    GateDecision.ALLOW: "green",
    GateDecision.CONFIRM: "yellow",
    GateDecision.FORBID: "red",
}


def cli() -> None:
    """Main CLI entry point."""
    build_app()()


def build_app() -> click.Group:
    """Build the click command group."""

    @click.group()
    @click.version_option(version=__version__, prog_name="toolwarden")
    def app() -> None:
        """Toolwarden: a safety-gated agentic command executor."""
        pass

    @app.command()
    @click.argument("task")
    @click.option("--policy", type=click.Choice(POLICY_CHOICES), help="Security policy level")
    @click.option("--max-iterations", type=int, help="Maximum tool-result rounds")
    @click.option("--provider", type=click.Choice(["claude", "openai"]), help="Model provider")
    @click.option("--model", help="Model identifier")
    @click.option("--abort-on-deny", is_flag=True, default=None, help="Skip the rest of a batch after a denial")
    @click.option("--audit-file", type=click.Path(dir_okay=False, path_type=Path), help="Export the audit log here")
    @click.option("--json-logs", is_flag=True, default=None, help="Log as JSON lines on stderr")
    def run(
        task: str,
        policy: str | None,
        max_iterations: int | None,
        provider: str | None,
        model: str | None,
        abort_on_deny: bool | None,
        audit_file: Path | None,
        json_logs: bool | None,
    ) -> None:
        """Run an agent session for TASK."""
        settings = _load(
            {
                "policy": policy,
                "max_iterations": max_iterations,
                "provider": provider,
                "model": model,
                "abort_on_deny": abort_on_deny,
                "json_logs": json_logs,
            }
        )
        sys.exit(_run_session(task, settings, audit_file))

    @app.command()
    @click.option("--policy", type=click.Choice(POLICY_CHOICES), help="Security policy level")
    def tools(policy: str | None) -> None:
        """List the tools advertised to the model."""
        _list_tools(_load({"policy": policy}))

    @app.command()
    def status() -> None:
        """Show toolwarden version, settings and dependencies."""
        _status()

    return app


# ─── Command implementations ────────────────────────────────

def _load(overrides: dict) -> Settings:
    try:
        settings = load_settings(overrides=overrides)
    except ConfigurationError as e:
        raise click.ClickException(str(e)) from e
    configure_logging(level=settings.log_level, json_output=settings.json_logs)
    return settings


def _build_registry(settings: Settings) -> ToolRegistry:
    workspace = Workspace(settings.workspace)
    runner = ProcessRunner(
        RunnerConfig(
            timeout_seconds=settings.command_timeout_seconds,
            max_output_bytes=settings.max_output_bytes,
        )
    )
    registry = ToolRegistry()
    register_all_builtins(registry, workspace, runner)
    register_user_tools(registry, settings.user_tools, runner, workspace)
    return registry


def _run_session(task: str, settings: Settings, audit_file: Path | None) -> int:
    out = Console()
    err = Console(stderr=True)

    try:
        client = create_provider(
            settings.provider,
            api_key=settings.api_key,
            model=settings.model,
            base_url=settings.base_url,
            system_prompt=settings.system_prompt,
        )
    except Exception as e:
        # SDK clients reject missing credentials at construction
        err.print(f"[red]Cannot create provider:[/red] {e}")
        return 1

    audit_log = AuditLog() if audit_file else None
    loop = AgentLoop.from_settings(
        settings,
        client,
        _build_registry(settings),
        prompt=ConsoleConfirmationPrompt(err),
        audit_log=audit_log,
    )

    err.print(
        f"[dim]toolwarden {__version__} | policy={settings.policy.value} "
        f"| provider={settings.provider} | workspace={settings.workspace}[/dim]"
    )
    try:
        outcome = asyncio.run(loop.run_task(task))
    except ToolwardenError as e:
        err.print(f"[red]Error:[/red] {e}")
        return 1
    finally:
        if audit_log is not None and audit_file is not None:
            audit_log.export_json(audit_file)
            err.print(audit_log.summary_table())
            err.print(f"[dim]Audit log written to {audit_file}[/dim]")

    if outcome.status == SessionStatus.DONE:
        out.print(outcome.final_text, markup=False, highlight=False)
        return 0

    err.print(
        f"[red]Session failed[/red] ({outcome.failure_kind.value if outcome.failure_kind else 'unknown'}): "
        f"{outcome.message}"
    )
    err.print(f"[dim]{outcome.iterations} iteration(s), {len(outcome.transcript)} message(s)[/dim]")
    return 1


def _list_tools(settings: Settings) -> None:
    registry = _build_registry(settings)
    policy = settings.policy
    advertised = {schema.name for schema in registry.schemas_for_model(policy)}

    table = Table(title=f"Tools under policy {policy.value}")
    table.add_column("Name", style="bold")
    table.add_column("Risk")
    table.add_column("Decision")
    table.add_column("Description")

    for tool in registry.get_all():
        decision = SecurityPolicy.decide(tool.risk_class, policy)
        style = _DECISION_STYLE[decision]
        table.add_row(
            tool.name,
            tool.risk_class.value,
            f"[{style}]{decision.value}[/{style}]",
            tool.description,
        )

    console = Console()
    if not advertised:
        console.print("[yellow]Tool calling is disabled; the model is offered no tools.[/yellow]")
    console.print(table)


def _status() -> None:
    console = Console()
    console.print(f"\n  [bold]toolwarden[/bold] {__version__}")
    console.print(f"  Python: {sys.version.split()[0]}")

    try:
        settings = load_settings()
    except ConfigurationError as e:
        console.print(f"\n  [red]Configuration error:[/red] {e}")
    else:
        console.print("\n  Settings:")
        console.print(f"    policy                {settings.policy.value}")
        console.print(f"    provider              {settings.provider}")
        console.print(f"    model                 {settings.model or '(provider default)'}")
        console.print(f"    max_iterations        {settings.max_iterations}")
        console.print(f"    workspace             {settings.workspace}")
        console.print(f"    user tools            {len(settings.user_tools)}")

    deps = {
        "anthropic": "Anthropic SDK",
        "openai": "OpenAI Provider",
        "httpx": "HTTP client",
        "pydantic": "Models",
        "click": "CLI",
        "rich": "Terminal output",
    }

    console.print("\n  Dependencies:")
    for pkg, label in deps.items():
        try:
            mod = importlib.import_module(pkg)
            version = getattr(mod, "__version__", "installed")
            console.print(f"    {label:24s} {pkg:12s} {version}")
        except ImportError:
            console.print(f"    {label:24s} {pkg:12s} NOT INSTALLED")

    console.print("\n  Environment:")
    for var in ["ANTHROPIC_API_KEY", "OPENAI_API_KEY", "TOOLWARDEN_POLICY", "TOOLWARDEN_MODEL"]:
        value = os.environ.get(var)
        if value and var.endswith("_KEY"):
            masked = value[:4] + "..." + value[-4:] if len(value) > 10 else "***"
            console.print(f"    {var:24s} {masked}")
        elif value:
            console.print(f"    {var:24s} {value}")
        else:
            console.print(f"    {var:24s} NOT SET")


if __name__ == "__main__":
    cli()
