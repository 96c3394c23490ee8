"""Endpoint model: one HTTP method on one resource path.

The specification of an endpoint is a Swagger 2.0 operation object enriched
with API Gateway extensions and the ``x-app`` block that tells which APIs
expose it and which integration backs it.
"""

import copy

from pydantic import BaseModel, field_validator

from api_deploy_agent.spec.merge import Document, deep_merge, get_path

HTTP_METHODS = ("GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "ANY")

APP_EXTENSION = "x-app"
PROVIDER_PREFIX = "x-amazon-apigateway-"
INTEGRATION_KEY = "x-amazon-apigateway-integration"
ANY_METHOD_KEY = "x-amazon-apigateway-any-method"
DOC_ONLY_FIELDS = ("summary", "description", "externalDocs", "tags")

SPEC_VIEWS = ("doc", "aws", "complete")


class Endpoint(BaseModel):
    """A single API endpoint identified by (resource_path, method)."""

    resource_path: str  # /users/{id}
    method: str  # GET / POST / ... / ANY
    spec: dict = {}

    @field_validator("method")
    @classmethod
    def _normalize_method(cls, value: str) -> str:
        method = value.upper()
        if method not in HTTP_METHODS:
            raise ValueError(f"{value} is not a supported HTTP method")
        return method

    @field_validator("resource_path")
    @classmethod
    def _check_resource_path(cls, value: str) -> str:
        if not value.startswith("/"):
            raise ValueError(f"resource path {value!r} must begin with '/'")
        if value != "/" and any(not segment for segment in value[1:].split("/")):
            raise ValueError(f"resource path {value!r} contains an empty segment")
        return value

    @property
    def identity(self) -> tuple[str, str]:
        return self.resource_path, self.method

    @property
    def operation_key(self) -> str:
        """Key of this endpoint under ``paths.<resource_path>`` in Swagger."""
        return ANY_METHOD_KEY if self.method == "ANY" else self.method.lower()

    def get_spec(self, view: str = "aws") -> Document:
        """Return a copy of the specification filtered for ``view``.

        ``doc`` drops provider extensions, ``aws`` drops documentation
        fields, ``complete`` returns everything.
        """
        if view not in SPEC_VIEWS:
            raise ValueError(f"Unknown specification view {view!r}, expected one of {SPEC_VIEWS}")

        spec = copy.deepcopy(self.spec)
        if view == "complete":
            return spec

        spec.pop(APP_EXTENSION, None)
        if view == "doc":
            return {k: v for k, v in spec.items() if not k.startswith(PROVIDER_PREFIX)}
        return {k: v for k, v in spec.items() if k not in DOC_ONLY_FIELDS}

    def update_spec(self, data: Document) -> None:
        """Deep-merge ``data`` into the specification."""
        self.spec = deep_merge(self.spec, data)

    def get_apis(self) -> list[str]:
        apis = get_path(self.spec, APP_EXTENSION, "apis", default=[])
        return list(apis) if isinstance(apis, list) else []

    def belongs_to_api(self, api_identifier: str) -> bool:
        return api_identifier in self.get_apis()

    def get_integration_target(self) -> str | None:
        """Return the Lambda identifier referenced by the endpoint, if any."""
        return get_path(self.spec, APP_EXTENSION, "lambda")

    def __str__(self) -> str:
        return f"{self.method} {self.resource_path}"
