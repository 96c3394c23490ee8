import json
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from api_deploy_agent.config import Settings
from api_deploy_agent.context import AppContext

FIXTURES = Path(__file__).parent / "fixtures"
PROJECT = FIXTURES / "project"


def client_error(code: str, operation: str = "Operation", message: str = "boom") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": message}}, operation)


class FakeApiGateway:
    """In-memory stand-in for the boto3 apigateway client."""

    def __init__(self):
        self.rest_apis: dict[str, str] = {}  # name -> id
        self.bodies: dict[str, list[bytes]] = {}  # name -> uploaded bodies
        self.deployments: list[tuple[str, str]] = []
        self.fail_names: dict[str, ClientError] = {}
        self.fail_deployments: dict[str, ClientError] = {}

    def get_paginator(self, operation):
        assert operation == "get_rest_apis"
        return self

    def paginate(self):
        return [{"items": [{"id": i, "name": n} for n, i in self.rest_apis.items()]}]

    def _record(self, body: bytes) -> str:
        name = json.loads(body)["info"]["title"]
        if name in self.fail_names:
            raise self.fail_names[name]
        self.bodies.setdefault(name, []).append(body)
        return name

    def import_rest_api(self, body, failOnWarnings):
        name = self._record(body)
        self.rest_apis[name] = f"id{len(self.rest_apis) + 1}"
        return {"id": self.rest_apis[name], "name": name}

    def put_rest_api(self, restApiId, mode, failOnWarnings, body):
        name = self._record(body)
        assert self.rest_apis[name] == restApiId
        return {"id": restApiId, "name": name}

    def create_deployment(self, restApiId, stageName, description):
        if restApiId in self.fail_deployments:
            raise self.fail_deployments[restApiId]
        self.deployments.append((restApiId, stageName))
        return {"id": f"dep-{len(self.deployments)}"}


def make_lambda_client(existing: bool = False, alias_exists: bool = False) -> MagicMock:
    client = MagicMock()
    if existing:
        client.get_function.return_value = {"Configuration": {"FunctionName": "x"}}
    else:
        client.get_function.side_effect = client_error("ResourceNotFoundException", "GetFunction")
    if alias_exists:
        client.get_alias.return_value = {"Name": "v1"}
    else:
        client.get_alias.side_effect = client_error("ResourceNotFoundException", "GetAlias")

    def _function(**params):
        name = params["FunctionName"]
        return {"FunctionArn": f"arn:aws:lambda:us-east-1:123456789012:function:{name}"}

    def _alias(**params):
        name = params["FunctionName"]
        return {
            "AliasArn": f"arn:aws:lambda:us-east-1:123456789012:function:{name}:{params['Name']}",
            "FunctionVersion": params["FunctionVersion"],
        }

    client.create_function.side_effect = _function
    client.update_function_configuration.side_effect = _function
    client.publish_version.return_value = {"Version": "3"}
    client.create_alias.side_effect = _alias
    client.update_alias.side_effect = _alias
    return client


def make_iam_client() -> MagicMock:
    client = MagicMock()

    def _get_role(RoleName):
        if not RoleName.startswith("TEST_"):
            raise client_error("NoSuchEntity", "GetRole")
        return {"Role": {"Arn": f"arn:aws:iam::123456789012:role/{RoleName}"}}

    client.get_role.side_effect = _get_role
    return client


class FakeAws:
    def __init__(self):
        self.apigateway = FakeApiGateway()
        self.clients = {
            "apigateway": self.apigateway,
            "lambda": make_lambda_client(),
            "iam": make_iam_client(),
        }

    def factory(self, service, region):
        return self.clients[service]


@pytest.fixture
def settings():
    return Settings(project_root=PROJECT, api_deploy_delay=0, environment="TEST", stage="v1")


@pytest.fixture
def aws():
    return FakeAws()


@pytest.fixture
def app(settings, aws):
    return AppContext.create(settings, client_factory=aws.factory)


@pytest.fixture
def bare_app(settings, aws):
    """An application without any plugin registered."""
    return AppContext(settings, client_factory=aws.factory)
