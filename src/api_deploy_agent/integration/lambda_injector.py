"""Lambda proxy integration for API Gateway endpoints."""

import logging
from typing import Awaitable, Callable

from api_deploy_agent.api_gateway.endpoint import INTEGRATION_KEY, Endpoint
from api_deploy_agent.integration.base import IntegrationDataInjector
from api_deploy_agent.spec.merge import get_path

logger = logging.getLogger(__name__)

LAMBDA_INVOCATION_URI = "arn:aws:apigateway:{region}:lambda:path/2015-03-31/functions/{arn}/invocations"

RoleResolverFn = Callable[[str], Awaitable[str]]


class LambdaIntegrationDataInjector(IntegrationDataInjector):
    """Wires endpoints declaring ``x-app.lambda`` to a deployed function.

    ``function_arn`` is the ARN returned by the deployment (an alias ARN when
    the function has been aliased). ``resolve_role`` turns the
    ``credentials`` of an integration into a role ARN.
    """

    def __init__(self, lambda_identifier: str, function_arn: str, resolve_role: RoleResolverFn | None = None):
        self.lambda_identifier = lambda_identifier
        self.function_arn = function_arn
        self.resolve_role = resolve_role

    @property
    def identifier(self) -> str:
        return self.lambda_identifier

    @property
    def region(self) -> str:
        # arn:aws:lambda:<region>:<account>:function:<name>[:<alias>]
        return self.function_arn.split(":")[3]

    @property
    def invocation_uri(self) -> str:
        return LAMBDA_INVOCATION_URI.format(region=self.region, arn=self.function_arn)

    def applies_to(self, endpoint: Endpoint) -> bool:
        return endpoint.get_integration_target() == self.lambda_identifier

    async def apply_to_endpoint(self, endpoint: Endpoint) -> None:
        integration = get_path(endpoint.spec, INTEGRATION_KEY, default={}) or {}
        data = {
            "uri": self.invocation_uri,
            "type": integration.get("type", "aws_proxy"),
            "httpMethod": "POST",
        }
        if data["type"] == "aws_proxy":
            data["contentHandling"] = integration.get("contentHandling", "CONVERT_TO_TEXT")
            data["passthroughBehavior"] = integration.get("passthroughBehavior", "when_no_match")

        credentials = integration.get("credentials")
        if credentials and self.resolve_role is not None:
            data["credentials"] = await self.resolve_role(credentials)

        endpoint.update_spec({INTEGRATION_KEY: data})
        logger.debug("Lambda %s wired to endpoint %s", self.lambda_identifier, endpoint)
