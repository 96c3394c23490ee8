"""CLI entry point for api-deploy-agent."""

import asyncio
import json
import sys

import click

from api_deploy_agent.api_gateway.deployer import ApiDeployer
from api_deploy_agent.api_gateway.endpoint import HTTP_METHODS, SPEC_VIEWS
from api_deploy_agent.config import load_settings
from api_deploy_agent.context import AppContext, DeployContext
from api_deploy_agent.errors import DeployAgentError, InsufficientPermissionsError
from api_deploy_agent.logger import setup_logging
from api_deploy_agent.report import (
    API_COLUMNS,
    LAMBDA_COLUMNS,
    api_report_row,
    lambda_report_row,
    render_table,
)


def _build_app(ctx: click.Context) -> AppContext:
    settings = load_settings()
    setup_logging(verbose=ctx.obj.get("verbose", False), level=settings.log_level)
    return AppContext.create(settings)


def _run(coro):
    """Run a coroutine and turn agent errors into user-facing messages."""
    try:
        return asyncio.run(coro)
    except InsufficientPermissionsError as e:
        click.echo(click.style("\n    Insufficient permissions to perform the action\n", fg="red"), err=True)
        click.echo("The IAM user/role you are using to perform this action does not have sufficient permissions.\n", err=True)
        click.echo(f"{e}\n", err=True)
        click.echo("Please update the policies of the user/role before trying again.", err=True)
        sys.exit(1)
    except DeployAgentError as e:
        click.echo(click.style(str(e), fg="red"), err=True)
        sys.exit(1)


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Show debug logs.")
@click.pass_context
def main(ctx: click.Context, verbose: bool):
    """API Deploy Agent: deploy Lambda-backed APIs to API Gateway."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose


@main.command()
@click.argument("api_identifiers", nargs=-1)
@click.option("-r", "--region", default=None, help="AWS region (defaults to the project setting).")
@click.option("-s", "--stage", default=None, help="API stage to publish.")
@click.option("-e", "--environment", default=None, help="Environment prefixing remote names.")
@click.pass_context
def deploy_apis(ctx: click.Context, api_identifiers: tuple[str, ...], region: str | None, stage: str | None, environment: str | None):
    """Deploy and publish APIs (all of them when no identifier is given)."""
    app = _build_app(ctx)
    settings = app.settings
    region = region or settings.region
    stage = stage or settings.stage
    environment = environment or settings.environment

    click.echo(f"Deploying APIs in {region} (environment: {environment}, stage: {stage})...")
    deployer = ApiDeployer(app)
    run = _run(deployer.deploy(region, stage, environment, list(api_identifiers) or None))

    if not run.reports:
        click.echo("This project does not contain any API to deploy.")
        sys.exit(1)

    click.echo()
    click.echo(render_table(API_COLUMNS, [api_report_row(r) for r in run.reports]))
    click.echo()
    if not run.success:
        click.echo("The deployment of one or more APIs failed. The publication step has not been performed.")
        sys.exit(1)
    click.echo("APIs have been published" if run.published else "Some APIs could not be published")
    if not run.published:
        sys.exit(1)


@main.command()
@click.argument("lambda_identifiers", nargs=-1)
@click.option("--all", "deploy_all", is_flag=True, help="Deploy all Lambdas of the project.")
@click.option("-r", "--region", default=None, help="AWS region (defaults to the project setting).")
@click.option("-e", "--environment", default=None, help="Environment prefixing function names.")
@click.option("-a", "--alias", default=None, help="Alias to point to the new version.")
@click.pass_context
def deploy_lambdas(ctx: click.Context, lambda_identifiers: tuple[str, ...], deploy_all: bool, region: str | None, environment: str | None, alias: str | None):
    """Deploy Lambdas and optionally alias their new version."""
    app = _build_app(ctx)
    plugin = app.hooks.get_plugin("lambda")
    if plugin is None:
        click.echo("The lambda plugin is not enabled in this project.", err=True)
        sys.exit(1)

    lambdas = plugin.load_lambdas()
    if not lambdas:
        click.echo(click.style("This project does not contain any Lambda.", fg="red"), err=True)
        sys.exit(1)
    if not deploy_all:
        lambdas = [lam for lam in lambdas if lam.identifier in lambda_identifiers]
    if not lambdas:
        click.echo("No Lambda selected. Give identifiers or use --all.", err=True)
        sys.exit(1)

    context = DeployContext(
        region=region or app.settings.region,
        stage=alias,
        environment=environment or app.settings.environment,
    )
    click.echo(f"Deploying {len(lambdas)} Lambda(s) in {context.region} (alias: {alias or 'no alias'})...")
    results = _run(plugin.deploy_lambdas(lambdas, context))
    click.echo()
    click.echo(render_table(LAMBDA_COLUMNS, [lambda_report_row(report) for report, _ in results]))


@main.command()
@click.argument("identifier")
@click.option("-s", "--spec-version", "view", default="doc", type=click.Choice(SPEC_VIEWS), help="Version of the specification.")
@click.pass_context
def inspect_api(ctx: click.Context, identifier: str, view: str):
    """Print the aggregated specification of an API."""
    app = _build_app(ctx)
    try:
        spec = _run(ApiDeployer(app).get_api_spec(identifier, view))
    except LookupError as e:
        click.echo(str(e), err=True)
        sys.exit(1)
    click.echo(json.dumps(spec, indent=2))


@main.command()
@click.argument("resource_path")
@click.argument("http_method", type=click.Choice(HTTP_METHODS, case_sensitive=False))
@click.option("-s", "--spec-version", "view", default="aws", type=click.Choice(SPEC_VIEWS), help="Version of the specification.")
@click.pass_context
def inspect_endpoint(ctx: click.Context, resource_path: str, http_method: str, view: str):
    """Print the merged specification of an endpoint."""
    app = _build_app(ctx)
    spec = _run(ApiDeployer(app).get_endpoint_spec(http_method, resource_path, view))
    click.echo(json.dumps(spec, indent=2))
