"""CLI tool for planning, executing and serving the ETF auto-agent."""

import json
from pathlib import Path
from typing import Any, Optional

import typer
import uvicorn
import yaml
from pydantic import ValidationError
from typing_extensions import Annotated

from etf_autoagent.api.agent_routes import select_chain_adapter
from etf_autoagent.app import create_app
from etf_autoagent.config import ConfigurationError, Settings
from etf_autoagent.execution.executor import ActionExecutor, ExecutorConfig
from etf_autoagent.models.context import AgentContext
from etf_autoagent.models.enums import PlanStatus
from etf_autoagent.models.plan import AgentPlan
from etf_autoagent.observability.logging import setup_logging
from etf_autoagent.planner.enhanced import EnhancedGeminiPlanner, PlannerConfig
from etf_autoagent.planner.gemini_planner import GeminiPlanner
from etf_autoagent.verification.store import VerificationStores


app = typer.Typer(help="ETF Auto-Agent CLI")


def get_settings() -> Settings:
    return Settings.from_env()


def _load_document(file_path: Path) -> Any:
    """Reads a JSON or YAML file, exiting with code 1 on failure."""
    if not file_path.exists():
        typer.echo(f"Error: File not found: {file_path}", err=True)
        raise typer.Exit(code=1)
    try:
        with open(file_path, "r") as f:
            return yaml.safe_load(f)
    except yaml.YAMLError as e:
        typer.echo(f"Error parsing {file_path}: {e}", err=True)
        raise typer.Exit(code=1)


def _load_plan(file_path: Path) -> AgentPlan:
    data = _load_document(file_path)
    if isinstance(data, dict) and isinstance(data.get("data"), dict):
        data = data["data"]
    try:
        return AgentPlan.model_validate(data)
    except ValidationError as e:
        typer.echo(f"Invalid plan: {e}", err=True)
        raise typer.Exit(code=1)


def _emit(payload: dict, output: Optional[Path]) -> None:
    text = json.dumps(payload, indent=2)
    if output:
        output.write_text(text)
        typer.echo(f"Written to {output}")
    else:
        typer.echo(text)


@app.command("plan")
def plan(
    goal: Annotated[str, typer.Argument(help="Free-text goal, e.g. 'deposit 10 USDC'")],
    context_file: Annotated[
        Optional[Path], typer.Option("--context", help="JSON/YAML AgentContext file")
    ] = None,
    enhanced: Annotated[
        bool, typer.Option("--enhanced/--basic", help="Planner variant")
    ] = True,
    output: Annotated[Optional[Path], typer.Option(help="Write the plan here")] = None,
):
    """Creates a plan for GOAL. Falls back to keyword templates without an API key."""
    settings = get_settings()
    setup_logging(settings.log_level)
    context = AgentContext()
    if context_file:
        try:
            context = AgentContext.model_validate(_load_document(context_file) or {})
        except ValidationError as e:
            typer.echo(f"Invalid context: {e}", err=True)
            raise typer.Exit(code=1)

    if enhanced:
        planner: GeminiPlanner = EnhancedGeminiPlanner(
            api_key=settings.gemini_api_key, config=PlannerConfig(model=settings.gemini_model)
        )
    else:
        planner = GeminiPlanner(api_key=settings.gemini_api_key, model_name=settings.gemini_model)
    _emit(planner.create_plan(goal, context).to_wire(), output)


@app.command("execute")
def execute(
    plan_file: Annotated[Path, typer.Argument(help="Plan produced by 'plan'")],
    user_id: Annotated[str, typer.Option(help="Privy user id")],
    wallet_id: Annotated[str, typer.Option(help="Privy server wallet id")],
    output: Annotated[Optional[Path], typer.Option(help="Write the executed plan here")] = None,
):
    """Executes a plan against Privy, or the simulated chain when Privy is not configured."""
    settings = get_settings()
    setup_logging(settings.log_level)
    agent_plan = _load_plan(plan_file)
    try:
        chain = select_chain_adapter(settings)
    except ConfigurationError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)

    executor = ActionExecutor(
        chain,
        user_id,
        wallet_id,
        config=ExecutorConfig(action_delay_seconds=settings.action_delay_seconds),
        on_complete=lambda a: typer.echo(f"[completed] {a.id}: {a.description}", err=True),
        on_error=lambda a, e: typer.echo(f"[failed] {a.id}: {e}", err=True),
    )
    executed = executor.execute_plan(agent_plan)
    _emit(executed.to_wire(), output)
    if executed.status != PlanStatus.COMPLETED:
        raise typer.Exit(code=1)


@app.command("explain")
def explain(
    plan_file: Annotated[Path, typer.Argument(help="Plan to explain")],
):
    """Prints a summary and a per-action explanation of a plan."""
    settings = get_settings()
    setup_logging(settings.log_level)
    agent_plan = _load_plan(plan_file)
    planner = GeminiPlanner(api_key=settings.gemini_api_key, model_name=settings.gemini_model)

    typer.echo(planner.generate_action_summary(agent_plan.actions))
    for action in agent_plan.actions:
        typer.echo(f"\n[{action.type}] {action.description}")
        typer.echo(planner.explain_action(action))


@app.command("purge-expired")
def purge_expired():
    """Deletes expired challenges and pending OAuth entries from DATABASE_URL."""
    settings = get_settings()
    if not settings.database_url:
        typer.echo("Error: DATABASE_URL is not set", err=True)
        raise typer.Exit(code=1)
    removed = VerificationStores.from_database_url(settings.database_url).purge_expired()
    typer.echo(f"Purged {removed} expired entries")


@app.command("serve")
def serve(
    host: Annotated[Optional[str], typer.Option(help="Bind address")] = None,
    port: Annotated[Optional[int], typer.Option(help="Bind port")] = None,
):
    """Runs the HTTP server."""
    settings = get_settings()
    setup_logging(settings.log_level)
    try:
        settings.validate_real_services()
    except ConfigurationError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)
    uvicorn.run(create_app(settings), host=host or settings.host, port=port or settings.port)


if __name__ == "__main__":
    app()
