# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

"""Thin wrappers around the API Gateway v2 (WebSocket) control-plane APIs used during alias synchronization.

Refer
    https://boto3.amazonaws.com/v1/documentation/api/latest/reference/services/apigatewayv2.html
"""

import logging
from typing import Any, Dict, Iterator, Optional, Set

from botocore.exceptions import ClientError

from aliasflow.core.definitions.aws.common import exponential_retry, is_not_found

logger = logging.getLogger(__name__)

APIGATEWAYV2_CLIENT_RETRYABLE_EXCEPTION_LIST: Set[str] = {"ConflictException"}


def _paginate(api, items_key: str, **kwargs) -> Iterator[Dict[str, Any]]:
    next_token: Optional[str] = None
    while True:
        if next_token:
            response = exponential_retry(api, APIGATEWAYV2_CLIENT_RETRYABLE_EXCEPTION_LIST, NextToken=next_token, **kwargs)
        else:
            response = exponential_retry(api, APIGATEWAYV2_CLIENT_RETRYABLE_EXCEPTION_LIST, **kwargs)

        yield from response.get(items_key, [])

        next_token = response.get("NextToken", None)
        if not next_token:
            break


def get_routes(apigatewayv2, api_id: str) -> Iterator[Dict[str, Any]]:
    return _paginate(apigatewayv2.get_routes, "Items", ApiId=api_id)


def get_integrations(apigatewayv2, api_id: str) -> Iterator[Dict[str, Any]]:
    return _paginate(apigatewayv2.get_integrations, "Items", ApiId=api_id)


def update_integration_uri(apigatewayv2, api_id: str, integration_id: str, uri: str) -> Dict[str, Any]:
    return exponential_retry(
        apigatewayv2.update_integration,
        APIGATEWAYV2_CLIENT_RETRYABLE_EXCEPTION_LIST,
        ApiId=api_id,
        IntegrationId=integration_id,
        IntegrationUri=uri,
    )


def create_deployment(apigatewayv2, api_id: str, description: str) -> Dict[str, Any]:
    try:
        response = exponential_retry(
            apigatewayv2.create_deployment, APIGATEWAYV2_CLIENT_RETRYABLE_EXCEPTION_LIST, ApiId=api_id, Description=description
        )
        logger.info("Created deployment with ID: %s for WebSocket API %s.", response["DeploymentId"], api_id)
    except ClientError:
        logger.exception("Couldn't create a deployment for WebSocket API %s.", api_id)
        raise
    else:
        return response


def get_stage(apigatewayv2, api_id: str, stage_name: str) -> Optional[Dict[str, Any]]:
    try:
        return exponential_retry(apigatewayv2.get_stage, APIGATEWAYV2_CLIENT_RETRYABLE_EXCEPTION_LIST, ApiId=api_id, StageName=stage_name)
    except ClientError as error:
        if is_not_found(error):
            return None
        raise


def update_stage(
    apigatewayv2, api_id: str, stage_name: str, deployment_id: str, stage_variables: Optional[Dict[str, str]] = None
) -> Dict[str, Any]:
    kwargs = {"ApiId": api_id, "StageName": stage_name, "DeploymentId": deployment_id}
    if stage_variables:
        kwargs.update({"StageVariables": dict(stage_variables)})
    return exponential_retry(apigatewayv2.update_stage, APIGATEWAYV2_CLIENT_RETRYABLE_EXCEPTION_LIST, **kwargs)


def create_stage(
    apigatewayv2, api_id: str, stage_name: str, deployment_id: str, stage_variables: Optional[Dict[str, str]] = None
) -> Dict[str, Any]:
    kwargs = {"ApiId": api_id, "StageName": stage_name, "DeploymentId": deployment_id}
    if stage_variables:
        kwargs.update({"StageVariables": dict(stage_variables)})
    return exponential_retry(apigatewayv2.create_stage, APIGATEWAYV2_CLIENT_RETRYABLE_EXCEPTION_LIST, **kwargs)
