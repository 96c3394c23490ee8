"""Deployment orchestrator for APIs and endpoints.

``ApiDeployer.deploy`` runs the whole pipeline:

1. load API and endpoint specifications
2. deploy integrations (Lambdas ...) and collect their injectors
3. inject integration data into endpoints
4. attach endpoints to the APIs that expose them
5. deploy every API, then publish them if all deployments succeeded

Each step is wrapped in hook events so plugins can alter the data flowing
through it.
"""

import asyncio
import functools
import logging
from pathlib import Path

from api_deploy_agent.api_gateway.api import Api
from api_deploy_agent.api_gateway.endpoint import HTTP_METHODS, Endpoint
from api_deploy_agent.context import AppContext, DeployContext
from api_deploy_agent.errors import DuplicateEndpointError, IntegrationConflictError
from api_deploy_agent.integration.base import IntegrationDataInjector
from api_deploy_agent.logger import log_stage
from api_deploy_agent.report import DeploymentReport, DeploymentRun
from api_deploy_agent.spec.merge import load_fragment, merge_spec_files

logger = logging.getLogger(__name__)


class ApiDeployer:
    """Loads, assembles and deploys the APIs of a project."""

    def __init__(self, app: AppContext):
        self.app = app
        self.hooks = app.hooks

    # -- loading --------------------------------------------------------------

    async def load_apis(self) -> list[Api]:
        """Load every API found in the APIs directory."""
        await self.hooks.fire("before_apis_load")
        apis_dir = self.app.settings.apis_dir
        if not apis_dir.is_dir():
            logger.debug("No APIs directory at %s", apis_dir)
            apis: list[Api] = []
        else:
            subdirs = sorted(d for d in apis_dir.iterdir() if d.is_dir())
            apis = list(await asyncio.gather(*(self.load_api(d, d.name) for d in subdirs)))
        (apis,) = await self.hooks.fire("after_apis_load", apis)
        return apis

    async def load_api(self, spec_dir: Path, identifier: str) -> Api:
        spec_dir, identifier = await self.hooks.fire("before_api_load", spec_dir, identifier)
        loop = asyncio.get_running_loop()
        spec = await loop.run_in_executor(None, load_fragment, Path(spec_dir)) or {}
        (api,) = await self.hooks.fire("after_api_load", Api(spec, identifier))
        return api

    async def load_endpoints(self) -> list[Endpoint]:
        """Load every endpoint found in the endpoints directory.

        Endpoint leaves are directories named after an HTTP method; their
        specification merges every fragment from the root to the leaf.
        """
        await self.hooks.fire("before_endpoints_load")
        root = self.app.settings.endpoints_dir
        if not root.is_dir():
            logger.debug("No endpoints directory at %s", root)
            endpoints: list[Endpoint] = []
        else:
            leaves = []
            for directory in sorted(p for p in root.rglob("*") if p.is_dir()):
                if directory.name not in HTTP_METHODS:
                    continue
                parts = directory.relative_to(root).parts
                leaves.append(("/" + "/".join(parts[:-1]), directory.name))
            endpoints = list(await asyncio.gather(*(self.load_endpoint(root, rp, m) for rp, m in leaves)))
        (endpoints,) = await self.hooks.fire("after_endpoints_load", endpoints)
        _check_unique(endpoints)
        return endpoints

    async def load_endpoint(self, root: Path, resource_path: str, method: str) -> Endpoint:
        resource_path, method = await self.hooks.fire("before_endpoint_load", resource_path, method)
        sub_path = f"{resource_path.strip('/')}/{method}".lstrip("/")
        loop = asyncio.get_running_loop()
        spec = await loop.run_in_executor(None, functools.partial(merge_spec_files, root, sub_path))
        (endpoint,) = await self.hooks.fire(
            "after_endpoint_load", Endpoint(spec=spec, resource_path=resource_path, method=method)
        )
        return endpoint

    # -- assembly -------------------------------------------------------------

    async def load_integrations(self, context: DeployContext, endpoints: list[Endpoint]) -> list[IntegrationDataInjector]:
        """Let plugins deploy their integrations and return the injectors."""
        _, _, injectors = await self.hooks.fire("load_integrations", context, endpoints, [])
        return injectors

    async def add_integration_data_to_endpoints(
        self, endpoints: list[Endpoint], injectors: list[IntegrationDataInjector]
    ) -> list[Endpoint]:
        endpoints, injectors = await self.hooks.fire("before_add_integration_data_to_endpoints", endpoints, injectors)

        claims: list[tuple[IntegrationDataInjector, Endpoint]] = []
        owners: dict[tuple[str, str], IntegrationDataInjector] = {}
        for injector in injectors:
            for endpoint in endpoints:
                if not injector.applies_to(endpoint):
                    continue
                owner = owners.get(endpoint.identity)
                if owner is not None and owner.exclusive and injector.exclusive:
                    raise IntegrationConflictError(
                        f"Endpoint {endpoint} is claimed by both {owner.identifier} and {injector.identifier}"
                    )
                owners.setdefault(endpoint.identity, injector)
                claims.append((injector, endpoint))

        # One task per endpoint applies its injectors in declaration order.
        by_endpoint: dict[tuple[str, str], list[tuple[IntegrationDataInjector, Endpoint]]] = {}
        for injector, endpoint in claims:
            by_endpoint.setdefault(endpoint.identity, []).append((injector, endpoint))

        async def _apply(pairs):
            for injector, endpoint in pairs:
                await injector.apply_to_endpoint(endpoint)

        await asyncio.gather(*(_apply(pairs) for pairs in by_endpoint.values()))

        endpoints, injectors = await self.hooks.fire("after_add_integration_data_to_endpoints", endpoints, injectors)
        return endpoints

    async def add_endpoints_to_apis(self, apis: list[Api], endpoints: list[Endpoint]) -> list[Api]:
        apis, endpoints = await self.hooks.fire("before_add_endpoints_to_apis", apis, endpoints)
        for api in apis:
            for endpoint in endpoints:
                api.add_endpoint(endpoint)
        apis, endpoints = await self.hooks.fire("after_add_endpoints_to_apis", apis, endpoints)
        return apis

    # -- remote operations ----------------------------------------------------

    async def deploy_apis(self, apis: list[Api], context: DeployContext) -> list[DeploymentReport]:
        """Deploy the APIs, spacing calls to stay under API Gateway rate limits."""
        (apis,) = await self.hooks.fire("before_deploy_apis", apis)
        delay = self.app.settings.api_deploy_delay

        async def _deploy(position: int, api: Api) -> DeploymentReport:
            if position and delay:
                await asyncio.sleep(position * delay)
            logger.info("Deploying %s ...", api.identifier)
            return await api.deploy(self.app, context)

        reports = list(await asyncio.gather(*(_deploy(i, api) for i, api in enumerate(apis))))
        apis, reports = await self.hooks.fire("after_deploy_apis", apis, reports)
        return reports

    async def publish_all_apis(self, apis: list[Api], context: DeployContext) -> list[Api]:
        (apis,) = await self.hooks.fire("before_publish_all_apis", apis)
        await asyncio.gather(*(api.publish(self.app, context) for api in apis))
        (apis,) = await self.hooks.fire("after_publish_all_apis", apis)
        return apis

    async def deploy(
        self,
        region: str,
        stage: str | None,
        environment: str | None,
        api_identifiers: list[str] | None = None,
    ) -> DeploymentRun:
        """Run the whole pipeline and return one report per API."""
        context = DeployContext(region=region, stage=stage, environment=environment)

        with log_stage("Load APIs and endpoints"):
            apis, endpoints = await asyncio.gather(self.load_apis(), self.load_endpoints())
            if api_identifiers:
                apis = [api for api in apis if api.identifier in api_identifiers]

        with log_stage("Load integrations"):
            exposed = [e for e in endpoints if any(api.does_expose_endpoint(e) for api in apis)]
            injectors = await self.load_integrations(context, exposed)

        with log_stage("Add integrations to endpoints"):
            endpoints = await self.add_integration_data_to_endpoints(endpoints, injectors)

        with log_stage("Add endpoints to APIs"):
            apis = await self.add_endpoints_to_apis(apis, endpoints)

        with log_stage("Deploy APIs"):
            reports = await self.deploy_apis(apis, context)

        run = DeploymentRun(reports=reports)
        if not run.success:
            logger.error("The deployment of one or more APIs failed, the publication step is skipped")
            return run
        if not context.stage:
            logger.warning("No stage given, the APIs are deployed but not published")
            return run

        with log_stage("Publish APIs"):
            await self.publish_all_apis(apis, context)
        run.published = all(r.published for r in run.reports)
        return run

    # -- inspection -----------------------------------------------------------

    async def get_api_spec(self, identifier: str, view: str = "doc", stage: str | None = None) -> dict:
        apis, endpoints = await asyncio.gather(self.load_apis(), self.load_endpoints())
        api = next((a for a in apis if a.identifier == identifier), None)
        if api is None:
            raise LookupError(f"The API {identifier} does not exist")
        await self.add_endpoints_to_apis([api], endpoints)
        return api.gen_spec(view, stage=stage)

    async def get_endpoint_spec(self, method: str, resource_path: str, view: str = "aws") -> dict:
        if not resource_path.startswith("/"):
            resource_path = "/" + resource_path
        endpoint = await self.load_endpoint(self.app.settings.endpoints_dir, resource_path, method.upper())
        return endpoint.get_spec(view)


def _check_unique(endpoints: list[Endpoint]) -> None:
    seen: set[tuple[str, str]] = set()
    for endpoint in endpoints:
        if endpoint.identity in seen:
            raise DuplicateEndpointError(endpoint.resource_path, endpoint.method)
        seen.add(endpoint.identity)
