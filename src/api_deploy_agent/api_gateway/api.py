"""API model, a named aggregate of endpoints deployed as one REST API."""

import copy
import enum
import logging
import time

from api_deploy_agent.api_gateway.endpoint import APP_EXTENSION, HTTP_METHODS, Endpoint
from api_deploy_agent.aws.clients import dump_body
from api_deploy_agent.context import AppContext, DeployContext
from api_deploy_agent.errors import (
    ApiNotDeployedError,
    DeployAgentError,
    DuplicateEndpointError,
    InsufficientPermissionsError,
    ProviderError,
)
from api_deploy_agent.report import DeploymentReport
from api_deploy_agent.spec.merge import Document

logger = logging.getLogger(__name__)

# Fields an API spec may declare at the top level for convenience.
INFO_FIELDS = ("title", "description")


class ApiState(str, enum.Enum):
    LOADED = "Loaded"
    CREATED = "Created"
    UPDATED = "Updated"
    PUBLISHED = "Published"
    FAILED = "Failed"


class Api:
    """An API specification and the endpoints it exposes."""

    def __init__(self, spec: Document, identifier: str | None = None):
        self.spec = copy.deepcopy(spec)
        app_block = self.spec.setdefault(APP_EXTENSION, {})
        resolved = app_block.get("identifier") or identifier
        if not resolved:
            raise ValueError("An API needs an identifier (x-app.identifier or its directory name)")
        app_block["identifier"] = resolved

        self._endpoints: dict[tuple[str, str], Endpoint] = {}
        self.state = ApiState.LOADED
        self.report: DeploymentReport | None = None

    @property
    def identifier(self) -> str:
        return self.spec[APP_EXTENSION]["identifier"]

    @property
    def remote_id(self) -> str | None:
        return self.report.remote_id if self.report else None

    def get_endpoints(self) -> list[Endpoint]:
        return list(self._endpoints.values())

    def get_endpoint(self, resource_path: str, method: str) -> Endpoint | None:
        return self._endpoints.get((resource_path, method.upper()))

    def does_expose_endpoint(self, endpoint: Endpoint) -> bool:
        return endpoint.belongs_to_api(self.identifier)

    def add_endpoint(self, endpoint: Endpoint, allow_override: bool = False) -> bool:
        """Attach ``endpoint`` if it declares this API.

        Returns False when the endpoint is not exposed by this API. A second
        endpoint for the same (path, method) raises DuplicateEndpointError
        unless ``allow_override`` is set, in which case it replaces the first.
        """
        if not self.does_expose_endpoint(endpoint):
            return False
        if endpoint.identity in self._endpoints and not allow_override:
            raise DuplicateEndpointError(endpoint.resource_path, endpoint.method, self.identifier)
        self._endpoints[endpoint.identity] = endpoint
        return True

    def gen_spec(self, view: str = "aws", stage: str | None = None) -> Document:
        """Build the Swagger document of the API with all its endpoints."""
        spec = copy.deepcopy(self.spec)
        if view != "complete":
            spec.pop(APP_EXTENSION, None)

        info = spec.setdefault("info", {})
        for field in INFO_FIELDS:
            if field in spec:
                info.setdefault(field, spec.pop(field))
        info.setdefault("title", self.identifier)
        info.setdefault("version", stage or "1.0")
        spec.setdefault("swagger", "2.0")

        paths = spec.setdefault("paths", {})
        for endpoint in sorted(self._endpoints.values(), key=_endpoint_sort_key):
            paths.setdefault(endpoint.resource_path, {})[endpoint.operation_key] = endpoint.get_spec(view)
        return spec

    def remote_name(self, context: DeployContext) -> str:
        return context.prefixed(self.identifier)

    async def deploy(self, app: AppContext, context: DeployContext) -> DeploymentReport:
        """Create the REST API, or overwrite it if it already exists.

        Provider failures are recorded in the returned report. Permission
        failures are raised.
        """
        name = self.remote_name(context)
        report = DeploymentReport(identifier=self.identifier, name=name, region=context.region, stage=context.stage)
        self.report = report
        gateway = app.api_gateway(context.region)

        document = self.gen_spec("aws", stage=context.stage)
        document["info"]["title"] = name
        body = dump_body(document)

        start = time.perf_counter()
        try:
            existing = await gateway.find_rest_api(name)
            if existing is None:
                logger.debug("The API %s does not exist yet", name)
                report.operation = "Create"
                result = await gateway.import_rest_api(body)
                self.state = ApiState.CREATED
            else:
                logger.debug("The API %s already exists (%s)", name, existing["id"])
                report.operation = "Update"
                result = await gateway.put_rest_api(existing["id"], body)
                self.state = ApiState.UPDATED
            report.remote_id = result["id"]
        except InsufficientPermissionsError:
            self.state = ApiState.FAILED
            raise
        except ProviderError as e:
            logger.error("Deployment of the API %s failed: %s", self.identifier, e)
            self.state = ApiState.FAILED
            report.failed = str(e)
        finally:
            report.duration = time.perf_counter() - start
        return report

    async def publish(self, app: AppContext, context: DeployContext) -> DeploymentReport:
        """Point the stage of the context to a new deployment of the API."""
        if self.state not in (ApiState.CREATED, ApiState.UPDATED, ApiState.PUBLISHED) or not self.remote_id:
            raise ApiNotDeployedError(f"The API {self.identifier} must be deployed before being published")
        if not context.stage:
            raise DeployAgentError(f"A stage is required to publish the API {self.identifier}")

        gateway = app.api_gateway(context.region)
        try:
            await gateway.create_deployment(self.remote_id, context.stage, f"Deployment of {self.identifier}")
        except InsufficientPermissionsError:
            raise
        except ProviderError as e:
            logger.error("Publication of the API %s failed: %s", self.identifier, e)
            self.state = ApiState.FAILED
            self.report.failed = str(e)
            return self.report

        self.state = ApiState.PUBLISHED
        self.report.published = True
        self.report.stage = context.stage
        logger.info("API %s published on stage %s", self.identifier, context.stage)
        return self.report

    def __repr__(self) -> str:
        return f"Api({self.identifier!r}, endpoints={len(self._endpoints)})"


def _endpoint_sort_key(endpoint: Endpoint) -> tuple[str, int]:
    return endpoint.resource_path, HTTP_METHODS.index(endpoint.method)
