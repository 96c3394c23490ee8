"""Lambda model and its deployment in AWS."""

import asyncio
import copy
import logging
import time
from pathlib import Path

from api_deploy_agent.context import AppContext, DeployContext
from api_deploy_agent.errors import LambdaConfigError
from api_deploy_agent.integration.lambda_injector import LambdaIntegrationDataInjector
from api_deploy_agent.lambdas.package import build_package
from api_deploy_agent.report import DeploymentReport

logger = logging.getLogger(__name__)

# Parameters of CreateFunction that UpdateFunctionConfiguration does not accept.
CREATE_ONLY_PARAMS = ("Code", "Publish", "PackageType", "Tags", "CodeSigningConfigArn")


class Lambda:
    """A function of the project: a directory of code plus a ``config`` file.

    ``config["params"]`` holds the CreateFunction parameters.
    """

    def __init__(self, identifier: str, config: dict, fs_path: Path):
        self.identifier = identifier
        self.fs_path = Path(fs_path)
        self.config = copy.deepcopy(config)
        self.params = {
            "FunctionName": identifier,
            "Role": f"PLEASE-CONFIGURE-AN-EXECUTION-ROLE-FOR-{identifier}",
            "Timeout": 15,
            "Publish": False,
            **self.config.get("params", {}),
        }
        if "Runtime" not in self.params:
            raise LambdaConfigError(f"The Lambda {identifier} does not declare a Runtime")

    def function_name(self, context: DeployContext) -> str:
        return context.prefixed(self.identifier)

    async def deploy(self, app: AppContext, context: DeployContext) -> tuple[DeploymentReport, LambdaIntegrationDataInjector]:
        """Create or update the function, then alias it if the context has a stage.

        Returns the deployment report and the injector wiring endpoints to
        the deployed function.
        """
        client = app.lambda_client(context.region)
        roles = app.role_resolver(context.region)
        name = self.function_name(context)
        report = DeploymentReport(identifier=self.identifier, name=name, region=context.region, stage=context.stage)

        start = time.perf_counter()
        params = copy.deepcopy(self.params)
        params["FunctionName"] = name
        params["Role"] = await roles.resolve(params["Role"], context.environment)
        zip_file = await asyncio.get_running_loop().run_in_executor(None, build_package, self.fs_path)

        if await client.function_exists(name):
            logger.debug("The Lambda %s already exists", name)
            report.operation = "Update"
            configuration = {k: v for k, v in params.items() if k not in CREATE_ONLY_PARAMS}
            data = await client.update_function(name, zip_file, configuration)
            await client.wait_until_updated(name)
        else:
            logger.debug("The Lambda %s does not exist yet", name)
            report.operation = "Create"
            params["Code"] = {"ZipFile": zip_file}
            data = await client.create_function(params)
            await client.wait_until_active(name)
        report.arn = data["FunctionArn"]

        if context.stage:
            await self._set_alias(client, name, context.stage, report)
        report.duration = time.perf_counter() - start

        async def _resolve(role: str) -> str:
            return await roles.resolve(role, context.environment)

        return report, LambdaIntegrationDataInjector(self.identifier, report.arn, _resolve)

    async def _set_alias(self, client, name: str, alias: str, report: DeploymentReport) -> None:
        version = (await client.publish_version(name))["Version"]
        report.published_version = version
        logger.debug("The Lambda %s has been published: version %s", name, version)

        report.alias_existed = await client.alias_exists(name, alias)
        if report.alias_existed:
            data = await client.update_alias(name, version, alias)
        else:
            data = await client.create_alias(name, version, alias)
        report.arn = data["AliasArn"]
        logger.debug("The Lambda %s version %s has been aliased %s", name, version, data["AliasArn"])

    def __repr__(self) -> str:
        return f"Lambda({self.identifier!r})"
