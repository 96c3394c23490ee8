"""Exception hierarchy shared by the deploy pipeline."""


class DeployAgentError(Exception):
    """Base class for every error raised by api-deploy-agent."""


class SpecificationError(DeployAgentError):
    """A specification fragment exists but cannot be used."""

    def __init__(self, path, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Invalid specification {path}: {reason}")


class DuplicateEndpointError(DeployAgentError):
    """Two endpoints share the same (resource path, method) pair."""

    def __init__(self, resource_path: str, method: str, api_identifier: str | None = None):
        self.resource_path = resource_path
        self.method = method
        self.api_identifier = api_identifier
        where = f" in API {api_identifier}" if api_identifier else ""
        super().__init__(f"Endpoint {method} {resource_path} is declared more than once{where}")


class HookRegistrationError(DeployAgentError):
    """A hook callback cannot accept the arguments of its event."""


class HookContractError(DeployAgentError):
    """A hook callback returned something the pipeline cannot destructure."""


class IntegrationConflictError(DeployAgentError):
    """More than one exclusive integration claims the same endpoint."""


class ProviderError(DeployAgentError):
    """The cloud provider rejected a call."""

    def __init__(self, message: str, code: str | None = None):
        self.code = code
        super().__init__(message)


class InsufficientPermissionsError(ProviderError):
    """The credentials in use are not allowed to perform an operation."""


class ApiNotDeployedError(DeployAgentError):
    """An API was published before being deployed in the same run."""


class RoleNotFoundError(DeployAgentError):
    """A role reference does not match any IAM role."""


class LambdaConfigError(DeployAgentError):
    """A Lambda configuration file is incomplete or invalid."""
