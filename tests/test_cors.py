from api_deploy_agent.api_gateway.api import Api
from api_deploy_agent.api_gateway.endpoint import Endpoint
from api_deploy_agent.plugins.cors import DEFAULT_ALLOW_HEADERS, CorsPlugin, preflight_endpoint

HEADER = "method.response.header.{}"


def _ep(method, path, api="public"):
    return Endpoint(spec={"x-app": {"apis": [api]}}, resource_path=path, method=method)


def _response_parameters(endpoint):
    return endpoint.spec["x-amazon-apigateway-integration"]["responses"]["default"]["responseParameters"]


class TestPreflightEndpoint:
    def test_mock_integration_with_quoted_headers(self):
        ep = preflight_endpoint("public", "/users", {"Access-Control-Allow-Origin": "*"})
        assert ep.method == "OPTIONS"
        assert ep.belongs_to_api("public")
        assert ep.spec["x-amazon-apigateway-integration"]["type"] == "mock"
        assert _response_parameters(ep) == {HEADER.format("Access-Control-Allow-Origin"): "'*'"}
        assert ep.spec["responses"]["200"]["headers"] == {"Access-Control-Allow-Origin": {"type": "string"}}


class TestCorsPlugin:
    def test_one_preflight_per_resource_path(self, bare_app):
        api = Api({}, "public")
        for ep in (_ep("GET", "/users"), _ep("POST", "/users"), _ep("GET", "/orders")):
            api.add_endpoint(ep)
        CorsPlugin(bare_app).add_preflight_endpoints(api)

        users = api.get_endpoint("/users", "OPTIONS")
        assert api.get_endpoint("/orders", "OPTIONS") is not None
        assert _response_parameters(users)[HEADER.format("Access-Control-Allow-Methods")] == "'GET,OPTIONS,POST'"
        assert _response_parameters(users)[HEADER.format("Access-Control-Allow-Headers")] == f"'{DEFAULT_ALLOW_HEADERS}'"

    def test_declared_options_endpoint_is_kept(self, bare_app):
        api = Api({}, "public")
        declared = _ep("OPTIONS", "/users")
        api.add_endpoint(declared)
        api.add_endpoint(_ep("GET", "/users"))
        CorsPlugin(bare_app).add_preflight_endpoints(api)
        assert api.get_endpoint("/users", "OPTIONS") is declared

    def test_endpoint_file_overrides_api_block(self, bare_app):
        api = Api({"x-app": {"cors": {"Access-Control-Allow-Origin": "https://api.example.com"}}}, "public")
        headers = CorsPlugin(bare_app).cors_headers(api, "/users", ["GET"])
        assert headers["Access-Control-Allow-Origin"] == "https://example.com"

    def test_api_section_of_endpoint_file_wins(self, bare_app):
        headers = CorsPlugin(bare_app).cors_headers(Api({}, "admin"), "/users", ["GET"])
        assert headers["Access-Control-Allow-Origin"] == "https://admin.example.com"

    def test_api_block_applies_without_endpoint_file(self, bare_app):
        api = Api({"x-app": {"cors": {"Access-Control-Allow-Origin": "https://api.example.com"}}}, "public")
        headers = CorsPlugin(bare_app).cors_headers(api, "/orders", ["GET"])
        assert headers["Access-Control-Allow-Origin"] == "https://api.example.com"

    def test_hook_returns_its_arguments(self, bare_app):
        api = Api({}, "public")
        api.add_endpoint(_ep("GET", "/users"))
        apis, endpoints = CorsPlugin(bare_app).after_add_endpoints_to_apis([api], [])
        assert apis == [api] and endpoints == []
        assert api.get_endpoint("/users", "OPTIONS") is not None
