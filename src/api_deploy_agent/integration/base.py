"""Integration data injectors.

An injector is produced when an integration target (a Lambda, an HTTP
proxy, a mock ...) has been deployed. It knows which endpoints it backs and
how to write the provider wiring into their specification.
"""

from abc import ABC, abstractmethod

from api_deploy_agent.api_gateway.endpoint import Endpoint


class IntegrationDataInjector(ABC):
    """Writes integration data into the endpoints it applies to."""

    # An exclusive injector must be the only one applied to an endpoint.
    exclusive: bool = True

    @property
    @abstractmethod
    def identifier(self) -> str:
        """Name of the integration target, used in logs and errors."""

    @abstractmethod
    def applies_to(self, endpoint: Endpoint) -> bool:
        """Tell whether the injector backs ``endpoint``. Must not mutate it."""

    @abstractmethod
    async def apply_to_endpoint(self, endpoint: Endpoint) -> None:
        """Write the integration data into ``endpoint``.

        Applying the same injector twice must give the same specification
        as applying it once.
        """

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.identifier!r})"
