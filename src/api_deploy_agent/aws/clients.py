"""Thin async wrappers around the boto3 clients used by the pipeline.

boto3 is blocking, so every call runs in the loop's default executor and
only suspends the task that awaits it. Provider errors are translated into
the agent's exception hierarchy; "not found" answers become ``None`` or
``False``.
"""

import asyncio
import functools
import json
import logging
from typing import Any

from botocore.exceptions import BotoCoreError, ClientError

from api_deploy_agent.errors import InsufficientPermissionsError, ProviderError, RoleNotFoundError

logger = logging.getLogger(__name__)

PERMISSION_ERROR_CODES = {"AccessDeniedException", "AccessDenied", "UnauthorizedOperation", "UnauthorizedException"}
NOT_FOUND_ERROR_CODES = {"NotFoundException", "ResourceNotFoundException", "NoSuchEntity"}


def error_code(error: ClientError) -> str:
    return error.response.get("Error", {}).get("Code", "")


def translate_error(error: Exception) -> ProviderError:
    """Convert a botocore error into a ProviderError subclass."""
    if isinstance(error, ClientError):
        code = error_code(error)
        message = error.response.get("Error", {}).get("Message", str(error))
        if code in PERMISSION_ERROR_CODES:
            return InsufficientPermissionsError(message, code=code)
        return ProviderError(f"{code}: {message}", code=code)
    return ProviderError(str(error))


class _AsyncClient:
    def __init__(self, client: Any):
        self.client = client

    async def _call(self, operation: str, **params) -> dict:
        loop = asyncio.get_running_loop()
        method = getattr(self.client, operation)
        try:
            return await loop.run_in_executor(None, functools.partial(method, **params))
        except (ClientError, BotoCoreError) as e:
            raise translate_error(e) from e

    async def _call_or_none(self, operation: str, **params) -> dict | None:
        try:
            return await self._call(operation, **params)
        except ProviderError as e:
            if e.code in NOT_FOUND_ERROR_CODES:
                return None
            raise


class ApiGatewayClient(_AsyncClient):
    """REST API operations of API Gateway."""

    async def find_rest_api(self, name: str) -> dict | None:
        """Return the REST API named ``name``, or None."""

        def _scan():
            paginator = self.client.get_paginator("get_rest_apis")
            for page in paginator.paginate():
                for item in page.get("items", []):
                    if item.get("name") == name:
                        return item
            return None

        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, _scan)
        except (ClientError, BotoCoreError) as e:
            raise translate_error(e) from e

    async def import_rest_api(self, body: str) -> dict:
        return await self._call("import_rest_api", body=body.encode("utf-8"), failOnWarnings=False)

    async def put_rest_api(self, rest_api_id: str, body: str) -> dict:
        return await self._call(
            "put_rest_api",
            restApiId=rest_api_id,
            mode="overwrite",
            failOnWarnings=False,
            body=body.encode("utf-8"),
        )

    async def create_deployment(self, rest_api_id: str, stage: str, description: str = "") -> dict:
        return await self._call(
            "create_deployment",
            restApiId=rest_api_id,
            stageName=stage,
            description=description,
        )


class LambdaClient(_AsyncClient):
    """Function, version and alias operations of AWS Lambda."""

    async def get_function(self, function_name: str) -> dict | None:
        return await self._call_or_none("get_function", FunctionName=function_name)

    async def function_exists(self, function_name: str) -> bool:
        return await self.get_function(function_name) is not None

    async def create_function(self, params: dict) -> dict:
        return await self._call("create_function", **params)

    async def update_function(self, function_name: str, zip_file: bytes, configuration: dict) -> dict:
        """Update the code then the configuration of a function."""
        await self._call("update_function_code", FunctionName=function_name, ZipFile=zip_file)
        await self.wait_until_updated(function_name)
        return await self._call("update_function_configuration", **configuration)

    async def wait_until_updated(self, function_name: str) -> None:
        await self._wait("function_updated", function_name)

    async def wait_until_active(self, function_name: str) -> None:
        await self._wait("function_active", function_name)

    async def _wait(self, waiter_name: str, function_name: str) -> None:
        waiter = self.client.get_waiter(waiter_name)
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, functools.partial(waiter.wait, FunctionName=function_name))
        except (ClientError, BotoCoreError) as e:
            raise translate_error(e) from e

    async def publish_version(self, function_name: str) -> dict:
        return await self._call("publish_version", FunctionName=function_name)

    async def alias_exists(self, function_name: str, alias: str) -> bool:
        return await self._call_or_none("get_alias", FunctionName=function_name, Name=alias) is not None

    async def create_alias(self, function_name: str, version: str, alias: str) -> dict:
        return await self._call("create_alias", FunctionName=function_name, FunctionVersion=version, Name=alias)

    async def update_alias(self, function_name: str, version: str, alias: str) -> dict:
        return await self._call("update_alias", FunctionName=function_name, FunctionVersion=version, Name=alias)


class RoleResolver(_AsyncClient):
    """Turns a role reference into an IAM role ARN."""

    async def resolve(self, role: str, environment: str | None = None) -> str:
        if role.startswith("arn:aws:iam::"):
            return role

        candidates = [f"{environment}_{role}", role] if environment else [role]
        for name in candidates:
            data = await self._call_or_none("get_role", RoleName=name)
            if data is not None:
                logger.debug("Role %s resolved to %s", role, data["Role"]["Arn"])
                return data["Role"]["Arn"]
        raise RoleNotFoundError(f"Could not find the IAM role {role} (tried {', '.join(candidates)})")


def dump_body(document: dict) -> str:
    """Serialize a specification deterministically for upload."""
    return json.dumps(document, indent=2, sort_keys=True)
