"""CORS plugin, adding a preflight OPTIONS endpoint to every resource path.

The headers of a preflight response are, by increasing priority: the
defaults below, the ``x-app.cors`` block of the API, then the ``default``
and ``<api-identifier>`` sections of an ``endpoints/<path>/cors`` file.
"""

import logging

from api_deploy_agent.api_gateway.api import Api
from api_deploy_agent.api_gateway.endpoint import APP_EXTENSION, INTEGRATION_KEY, Endpoint
from api_deploy_agent.context import AppContext
from api_deploy_agent.spec.merge import get_path, load_fragment

logger = logging.getLogger(__name__)

DEFAULT_ALLOW_HEADERS = "Content-Type,X-Amz-Date,Authorization,X-Api-Key,X-Amz-Security-Token"


class CorsPlugin:
    name = "cors"

    def __init__(self, app: AppContext):
        self.app = app

    def hooks(self) -> dict:
        return {"after_add_endpoints_to_apis": self.after_add_endpoints_to_apis}

    def after_add_endpoints_to_apis(self, apis: list[Api], endpoints: list[Endpoint]):
        for api in apis:
            self.add_preflight_endpoints(api)
        return apis, endpoints

    def add_preflight_endpoints(self, api: Api) -> None:
        methods_by_path: dict[str, list[str]] = {}
        for endpoint in api.get_endpoints():
            methods_by_path.setdefault(endpoint.resource_path, []).append(endpoint.method)

        for resource_path, methods in methods_by_path.items():
            if "OPTIONS" in methods:
                continue
            headers = self.cors_headers(api, resource_path, methods)
            api.add_endpoint(preflight_endpoint(api.identifier, resource_path, headers), allow_override=True)
            logger.debug("CORS preflight added to %s for %s", api.identifier, resource_path)

    def cors_headers(self, api: Api, resource_path: str, methods: list[str]) -> dict[str, str]:
        headers = {
            "Access-Control-Allow-Origin": "*",
            "Access-Control-Allow-Headers": DEFAULT_ALLOW_HEADERS,
            "Access-Control-Allow-Methods": ",".join(sorted(set(methods) | {"OPTIONS"})),
        }
        headers.update(get_path(api.spec, APP_EXTENSION, "cors", default={}) or {})

        path_dir = self.app.settings.endpoints_dir.joinpath(*[s for s in resource_path.split("/") if s])
        endpoint_cors = load_fragment(path_dir, "cors") or {}
        headers.update(endpoint_cors.get("default", {}))
        headers.update(endpoint_cors.get(api.identifier, {}))
        return headers


def preflight_endpoint(api_identifier: str, resource_path: str, headers: dict[str, str]) -> Endpoint:
    """Build a mock OPTIONS endpoint answering with the given CORS headers."""
    spec = {
        APP_EXTENSION: {"apis": [api_identifier]},
        "summary": "CORS preflight",
        "consumes": ["application/json"],
        "produces": ["application/json"],
        "responses": {
            "200": {
                "description": "CORS preflight response",
                "headers": {name: {"type": "string"} for name in headers},
            }
        },
        INTEGRATION_KEY: {
            "type": "mock",
            "requestTemplates": {"application/json": '{"statusCode": 200}'},
            "responses": {
                "default": {
                    "statusCode": "200",
                    "responseParameters": {
                        f"method.response.header.{name}": f"'{value}'" for name, value in headers.items()
                    },
                }
            },
        },
    }
    return Endpoint(spec=spec, resource_path=resource_path, method="OPTIONS")
