# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

"""Thin wrappers around the API Gateway (REST, v1) control-plane APIs used during alias synchronization.

Refer
    https://boto3.amazonaws.com/v1/documentation/api/latest/reference/services/apigateway.html
"""

import logging
from typing import Any, Dict, Iterator, List, Optional, Set

from botocore.exceptions import ClientError

from aliasflow.core.definitions.aws.common import exponential_retry, is_not_found

logger = logging.getLogger(__name__)

APIGATEWAY_CLIENT_RETRYABLE_EXCEPTION_LIST: Set[str] = {"ConflictException"}

# max page size allowed by GetResources
RESOURCES_PAGE_LIMIT = 500


def build_invocation_uri(region: str, lambda_arn: str, partition: str = "aws") -> str:
    return f"arn:{partition}:apigateway:{region}:lambda:path/2015-03-31/functions/{lambda_arn}/invocations"


def build_execute_api_arn(region: str, account_id: str, api_id: str, resource_pattern: str, partition: str = "aws") -> str:
    """ARN pattern scoping an execute-api invocation, e.g 'arn:aws:execute-api:us-east-1:123:abc/*/GET/users'"""
    return f"arn:{partition}:execute-api:{region}:{account_id}:{api_id}/{resource_pattern}"


def get_resources(apigateway, rest_api_id: str) -> Iterator[Dict[str, Any]]:
    """Yields all of the resources of the REST API (implicit pagination via 'position')."""
    position: Optional[str] = None
    while True:
        kwargs = {"restApiId": rest_api_id, "limit": RESOURCES_PAGE_LIMIT}
        if position:
            kwargs.update({"position": position})
        response = exponential_retry(apigateway.get_resources, APIGATEWAY_CLIENT_RETRYABLE_EXCEPTION_LIST, **kwargs)

        yield from response.get("items", [])

        position = response.get("position", None)
        if not position:
            break


def get_integration(apigateway, rest_api_id: str, resource_id: str, http_method: str) -> Optional[Dict[str, Any]]:
    try:
        return exponential_retry(
            apigateway.get_integration,
            APIGATEWAY_CLIENT_RETRYABLE_EXCEPTION_LIST,
            restApiId=rest_api_id,
            resourceId=resource_id,
            httpMethod=http_method,
        )
    except ClientError as error:
        if is_not_found(error):
            return None
        raise


def update_integration_uri(apigateway, rest_api_id: str, resource_id: str, http_method: str, uri: str) -> Dict[str, Any]:
    return exponential_retry(
        apigateway.update_integration,
        APIGATEWAY_CLIENT_RETRYABLE_EXCEPTION_LIST,
        restApiId=rest_api_id,
        resourceId=resource_id,
        httpMethod=http_method,
        patchOperations=[{"op": "replace", "path": "/uri", "value": uri}],
    )


def create_deployment(apigateway, rest_api_id: str, description: str) -> Dict[str, Any]:
    try:
        response = exponential_retry(
            apigateway.create_deployment, APIGATEWAY_CLIENT_RETRYABLE_EXCEPTION_LIST, restApiId=rest_api_id, description=description
        )
        logger.info("Created deployment with ID: %s for REST API %s.", response["id"], rest_api_id)
    except ClientError:
        logger.exception("Couldn't create a deployment for REST API %s.", rest_api_id)
        raise
    else:
        return response


def get_stage(apigateway, rest_api_id: str, stage_name: str) -> Optional[Dict[str, Any]]:
    try:
        return exponential_retry(
            apigateway.get_stage, APIGATEWAY_CLIENT_RETRYABLE_EXCEPTION_LIST, restApiId=rest_api_id, stageName=stage_name
        )
    except ClientError as error:
        if is_not_found(error):
            return None
        raise


def update_stage(apigateway, rest_api_id: str, stage_name: str, patch_operations: List[Dict[str, str]]) -> Dict[str, Any]:
    return exponential_retry(
        apigateway.update_stage,
        APIGATEWAY_CLIENT_RETRYABLE_EXCEPTION_LIST,
        restApiId=rest_api_id,
        stageName=stage_name,
        patchOperations=patch_operations,
    )


def create_stage(
    apigateway, rest_api_id: str, stage_name: str, deployment_id: str, variables: Optional[Dict[str, str]] = None
) -> Dict[str, Any]:
    kwargs = {"restApiId": rest_api_id, "stageName": stage_name, "deploymentId": deployment_id}
    if variables:
        kwargs.update({"variables": dict(variables)})
    return exponential_retry(apigateway.create_stage, APIGATEWAY_CLIENT_RETRYABLE_EXCEPTION_LIST, **kwargs)
