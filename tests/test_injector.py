import pytest

from api_deploy_agent.api_gateway.deployer import ApiDeployer
from api_deploy_agent.api_gateway.endpoint import Endpoint
from api_deploy_agent.errors import IntegrationConflictError
from api_deploy_agent.integration.base import IntegrationDataInjector
from api_deploy_agent.integration.lambda_injector import LambdaIntegrationDataInjector

ARN = "arn:aws:lambda:eu-west-1:123456789012:function:TEST-users:v1"


def _ep(lambda_id="users", integration=None, method="GET"):
    spec = {"x-app": {"apis": ["public"], "lambda": lambda_id}}
    if integration is not None:
        spec["x-amazon-apigateway-integration"] = integration
    return Endpoint(spec=spec, resource_path="/users", method=method)


async def _resolve(role):
    if role.startswith("arn:"):
        return role
    return f"arn:aws:iam::123456789012:role/TEST_{role}"


class TestLambdaInjector:
    def test_applies_to_endpoints_of_its_lambda(self):
        injector = LambdaIntegrationDataInjector("users", ARN)
        assert injector.applies_to(_ep("users"))
        assert not injector.applies_to(_ep("orders"))

    def test_applies_to_has_no_side_effect(self):
        ep = _ep("users")
        before = ep.get_spec("complete")
        LambdaIntegrationDataInjector("users", ARN).applies_to(ep)
        assert ep.get_spec("complete") == before

    @pytest.mark.asyncio
    async def test_writes_invocation_uri(self):
        ep = _ep()
        await LambdaIntegrationDataInjector("users", ARN).apply_to_endpoint(ep)
        integration = ep.spec["x-amazon-apigateway-integration"]
        assert integration["uri"] == (
            "arn:aws:apigateway:eu-west-1:lambda:path/2015-03-31/functions/" + ARN + "/invocations"
        )
        assert integration["type"] == "aws_proxy"
        assert integration["httpMethod"] == "POST"
        assert integration["contentHandling"] == "CONVERT_TO_TEXT"

    @pytest.mark.asyncio
    async def test_keeps_existing_integration_settings(self):
        ep = _ep(integration={"type": "aws", "responses": {"default": {"statusCode": "200"}}})
        await LambdaIntegrationDataInjector("users", ARN).apply_to_endpoint(ep)
        integration = ep.spec["x-amazon-apigateway-integration"]
        assert integration["type"] == "aws"
        assert "contentHandling" not in integration
        assert integration["responses"] == {"default": {"statusCode": "200"}}

    @pytest.mark.asyncio
    async def test_resolves_credentials(self):
        ep = _ep(integration={"credentials": "api-gateway-invoke"})
        await LambdaIntegrationDataInjector("users", ARN, _resolve).apply_to_endpoint(ep)
        assert ep.spec["x-amazon-apigateway-integration"]["credentials"] == (
            "arn:aws:iam::123456789012:role/TEST_api-gateway-invoke"
        )

    @pytest.mark.asyncio
    async def test_application_is_idempotent(self):
        injector = LambdaIntegrationDataInjector("users", ARN, _resolve)
        once, twice = _ep(integration={"credentials": "invoke"}), _ep(integration={"credentials": "invoke"})
        await injector.apply_to_endpoint(once)
        await injector.apply_to_endpoint(twice)
        await injector.apply_to_endpoint(twice)
        assert once.spec == twice.spec


class _TagInjector(IntegrationDataInjector):
    """Non-exclusive injector adding a header to every endpoint."""

    exclusive = False

    @property
    def identifier(self):
        return "tagger"

    def applies_to(self, endpoint):
        return True

    async def apply_to_endpoint(self, endpoint):
        endpoint.update_spec({"x-amazon-apigateway-integration": {"requestParameters": {"x": "'tagged'"}}})


class TestInjectorPolicy:
    @pytest.mark.asyncio
    async def test_two_exclusive_injectors_on_one_endpoint_conflict(self, bare_app):
        deployer = ApiDeployer(bare_app)
        injectors = [LambdaIntegrationDataInjector("users", ARN), LambdaIntegrationDataInjector("users", ARN)]
        with pytest.raises(IntegrationConflictError):
            await deployer.add_integration_data_to_endpoints([_ep()], injectors)

    @pytest.mark.asyncio
    async def test_non_exclusive_injectors_stack(self, bare_app):
        deployer = ApiDeployer(bare_app)
        ep = _ep()
        await deployer.add_integration_data_to_endpoints([ep], [LambdaIntegrationDataInjector("users", ARN), _TagInjector()])
        integration = ep.spec["x-amazon-apigateway-integration"]
        assert "uri" in integration
        assert integration["requestParameters"] == {"x": "'tagged'"}

    @pytest.mark.asyncio
    async def test_only_matching_endpoints_are_touched(self, bare_app):
        deployer = ApiDeployer(bare_app)
        users, orders = _ep("users"), _ep("orders", method="POST")
        await deployer.add_integration_data_to_endpoints([users, orders], [LambdaIntegrationDataInjector("users", ARN)])
        assert "x-amazon-apigateway-integration" in users.spec
        assert "x-amazon-apigateway-integration" not in orders.spec
