"""Lambda plugin: deploys the functions backing the endpoints of a run."""

import asyncio
import logging

from api_deploy_agent.api_gateway.endpoint import Endpoint
from api_deploy_agent.context import AppContext, DeployContext
from api_deploy_agent.lambdas.function import Lambda
from api_deploy_agent.lambdas.loader import load_lambdas, select_lambdas
from api_deploy_agent.report import DeploymentReport

logger = logging.getLogger(__name__)


class LambdaPlugin:
    name = "lambda"

    def __init__(self, app: AppContext):
        self.app = app
        self.reports: list[DeploymentReport] = []

    def hooks(self) -> dict:
        return {"load_integrations": self.load_integrations}

    def load_lambdas(self) -> list[Lambda]:
        return load_lambdas(self.app.settings.lambdas_dir)

    async def deploy_lambdas(self, lambdas: list[Lambda], context: DeployContext) -> list:
        """Deploy ``lambdas`` concurrently; returns (report, injector) pairs."""
        return list(await asyncio.gather(*(lam.deploy(self.app, context) for lam in lambdas)))

    async def load_integrations(self, context: DeployContext, endpoints: list[Endpoint], injectors: list):
        referenced = {e.get_integration_target() for e in endpoints} - {None}
        lambdas = select_lambdas(self.load_lambdas(), referenced)
        missing = referenced - {lam.identifier for lam in lambdas}
        if missing:
            logger.warning("Endpoints reference unknown Lambdas: %s", ", ".join(sorted(missing)))

        results = await self.deploy_lambdas(lambdas, context)
        self.reports = [report for report, _ in results]
        for report in self.reports:
            logger.info("Lambda %s: %s (%s)", report.identifier, report.operation, report.arn)
        return context, endpoints, injectors + [injector for _, injector in results]
