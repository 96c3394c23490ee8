"""Application and deployment contexts.

``AppContext`` is built once per process and handed to every component that
needs configuration, hooks or provider clients. ``DeployContext`` carries the
parameters of one deployment.
"""

import logging
from typing import Any, Callable

import boto3
from pydantic import BaseModel

from api_deploy_agent.aws.clients import ApiGatewayClient, LambdaClient, RoleResolver
from api_deploy_agent.config import Settings
from api_deploy_agent.hooks import HookBus

logger = logging.getLogger(__name__)

ClientFactory = Callable[[str, str], Any]


class DeployContext(BaseModel):
    """Where and under which names a deployment happens."""

    region: str
    stage: str | None = None
    environment: str | None = None

    def prefixed(self, identifier: str) -> str:
        """Remote name of a resource: the environment prefixes the identifier."""
        return f"{self.environment}-{identifier}" if self.environment else identifier


def _boto3_client_factory() -> ClientFactory:
    session = boto3.session.Session()

    def factory(service: str, region: str) -> Any:
        return session.client(service, region_name=region)

    return factory


class AppContext:
    """Process-wide state: settings, hook bus and provider clients."""

    def __init__(self, settings: Settings, hooks: HookBus | None = None, client_factory: ClientFactory | None = None):
        self.settings = settings
        self.hooks = hooks or HookBus()
        self._client_factory = client_factory
        self._clients: dict[tuple[str, str], Any] = {}

    def client(self, service: str, region: str) -> Any:
        """Return a (cached) boto3 client for ``service`` in ``region``."""
        key = (service, region)
        if key not in self._clients:
            if self._client_factory is None:
                self._client_factory = _boto3_client_factory()
            self._clients[key] = self._client_factory(service, region)
        return self._clients[key]

    def api_gateway(self, region: str) -> ApiGatewayClient:
        return ApiGatewayClient(self.client("apigateway", region))

    def lambda_client(self, region: str) -> LambdaClient:
        return LambdaClient(self.client("lambda", region))

    def role_resolver(self, region: str) -> RoleResolver:
        return RoleResolver(self.client("iam", region))

    def register_plugins(self, names: list[str] | None = None) -> None:
        """Instantiate and register the built-in plugins named in the settings."""
        from api_deploy_agent.plugins.registry import BUILTIN_PLUGINS

        for name in names if names is not None else self.settings.plugins:
            plugin_cls = BUILTIN_PLUGINS.get(name)
            if plugin_cls is None:
                logger.warning("Unknown plugin %s ignored", name)
                continue
            self.hooks.register_plugin(plugin_cls(self))

    @classmethod
    def create(cls, settings: Settings, client_factory: ClientFactory | None = None) -> "AppContext":
        app = cls(settings, client_factory=client_factory)
        app.register_plugins()
        return app
