# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

import logging
from typing import Any, Dict, Iterator, Optional, Set

from botocore.exceptions import ClientError

from aliasflow.core.definitions.aws.common import exponential_retry, is_not_found

logger = logging.getLogger(__name__)

# an in-flight configuration update makes most of the mutating APIs fail with this code for a short while
LAMBDA_CLIENT_RETRYABLE_EXCEPTION_LIST: Set[str] = {"ServiceException", "ResourceConflictException"}

# AddPermission reports a duplicate statement id with ResourceConflictException as well, a retry cannot resolve that
LAMBDA_PERMISSION_RETRYABLE_EXCEPTION_LIST: Set[str] = {"ServiceException"}

LATEST_VERSION = "$LATEST"

INVOKE_ACTION = "lambda:InvokeFunction"


def build_lambda_arn(region: str, account_id: str, function_name: str, qualifier: Optional[str] = None, partition: str = "aws") -> str:
    arn = f"arn:{partition}:lambda:{region}:{account_id}:function:{function_name}"
    return f"{arn}:{qualifier}" if qualifier else arn


def get_function_configuration(lambda_client, function_name: str, qualifier: Optional[str] = None) -> Dict[str, Any]:
    """https://boto3.amazonaws.com/v1/documentation/api/latest/reference/services/lambda.html#Lambda.Client.get_function_configuration

    Returns the configuration of the unqualified function ($LATEST) if 'qualifier' is not specified.
    Raises ClientError (ResourceNotFoundException) if the function or the qualified version does not exist.
    """
    kwargs = {"FunctionName": function_name}
    if qualifier:
        kwargs.update({"Qualifier": qualifier})
    return exponential_retry(lambda_client.get_function_configuration, {"ServiceException"}, **kwargs)


def function_exists(lambda_client, function_name: str) -> bool:
    try:
        exponential_retry(lambda_client.get_function, {"ServiceException"}, FunctionName=function_name)
    except ClientError as error:
        if is_not_found(error):
            return False
        logger.error("Couldn't check lambda '%s'! Error: %s", function_name, str(error))
        raise
    return True


def list_versions(lambda_client, function_name: str) -> Iterator[Dict[str, Any]]:
    """https://boto3.amazonaws.com/v1/documentation/api/latest/reference/services/lambda.html#Lambda.Client.list_versions_by_function

    with implicit pagination support. Yields the version configurations (including $LATEST).
    """
    marker: Optional[str] = None
    while True:
        if marker:
            response = exponential_retry(
                lambda_client.list_versions_by_function, {"ServiceException"}, FunctionName=function_name, Marker=marker
            )
        else:
            response = exponential_retry(lambda_client.list_versions_by_function, {"ServiceException"}, FunctionName=function_name)

        yield from response.get("Versions", [])

        marker = response.get("NextMarker", None)
        if not marker:
            break


def update_function_environment(lambda_client, function_name: str, variables: Dict[str, str]) -> Dict[str, Any]:
    """Pushes the environment variables as a configuration update of the unqualified function.

    The update is asynchronous on the service side, callers should poll 'LastUpdateStatus' before publishing.
    """
    try:
        response = exponential_retry(
            lambda_client.update_function_configuration,
            LAMBDA_CLIENT_RETRYABLE_EXCEPTION_LIST,
            FunctionName=function_name,
            Environment={"Variables": dict(variables)},
        )
        logger.debug("Requested configuration update for '%s' with ARN: '%s'.", function_name, response.get("FunctionArn"))
    except ClientError:
        logger.exception("Couldn't update function conf for %s.", function_name)
        raise
    else:
        return response


def wait_until_function_updated(lambda_client, function_name: str, delay: float, max_attempts: int) -> None:
    """Blocks on the 'function_updated' waiter until 'LastUpdateStatus' leaves 'InProgress'.

    Raises botocore WaiterError if the update fails, if the poll gets an error response or if 'max_attempts' is
    exceeded. Errors other than error responses (e.g connection errors) are raised as is.
    """
    lambda_client.get_waiter("function_updated").wait(FunctionName=function_name, WaiterConfig={"Delay": delay, "MaxAttempts": max_attempts})


def publish_version(lambda_client, function_name: str, description: str = "") -> Dict[str, Any]:
    try:
        response = exponential_retry(
            lambda_client.publish_version, LAMBDA_CLIENT_RETRYABLE_EXCEPTION_LIST, FunctionName=function_name, Description=description
        )
        logger.info("Published new version %s for function: '%s'.", response["Version"], function_name)
    except ClientError:
        logger.exception("Couldn't publish a new version for function %s.", function_name)
        raise
    else:
        return response


def get_alias(lambda_client, function_name: str, alias_name: str) -> Optional[Dict[str, Any]]:
    """Returns the alias descriptor or None if the function has no such alias."""
    try:
        return exponential_retry(lambda_client.get_alias, {"ServiceException"}, FunctionName=function_name, Name=alias_name)
    except ClientError as error:
        if is_not_found(error):
            return None
        raise


def create_alias(lambda_client, function_name: str, alias_name: str, version: str, description: str = "") -> Dict[str, Any]:
    response = exponential_retry(
        lambda_client.create_alias,
        LAMBDA_CLIENT_RETRYABLE_EXCEPTION_LIST,
        FunctionName=function_name,
        Name=alias_name,
        FunctionVersion=version,
        Description=description,
    )
    logger.info("Created alias '%s' for function '%s' pointing to version %s.", alias_name, function_name, version)
    return response


def update_alias(lambda_client, function_name: str, alias_name: str, version: str, description: str = "") -> Dict[str, Any]:
    response = exponential_retry(
        lambda_client.update_alias,
        LAMBDA_CLIENT_RETRYABLE_EXCEPTION_LIST,
        FunctionName=function_name,
        Name=alias_name,
        FunctionVersion=version,
        Description=description,
    )
    logger.info("Updated alias '%s' for function '%s' to version %s.", alias_name, function_name, version)
    return response


def add_permission(lambda_client, function_name, statement_id, action, principal, source_arn=None, source_account=None):
    """https://boto3.amazonaws.com/v1/documentation/api/latest/reference/services/lambda.html#Lambda.Client.add_permission"""

    kwargs = {
        "FunctionName": function_name,  # can be alias qualified, e.g 'my-function:dev'
        "StatementId": statement_id,  # should be unique
        "Action": action,  # 'lambda:InvokeFunction'
        "Principal": principal,  # 'apigateway.amazonaws.com'
    }
    if source_arn:
        kwargs.update({"SourceArn": source_arn})

    if source_account:
        kwargs.update({"SourceAccount": source_account})

    try:
        response = exponential_retry(lambda_client.add_permission, LAMBDA_PERMISSION_RETRYABLE_EXCEPTION_LIST, **kwargs)
        statement = response["Statement"]
        logger.debug("added permission to function: '%s'. new statement: '%s'.", function_name, statement)
    except ClientError:
        logger.exception("Couldn't add permission to function %s.", function_name)
        raise
    else:
        return statement


def remove_permission(lambda_client, function_name, statement_id) -> bool:
    """https://boto3.amazonaws.com/v1/documentation/api/latest/reference/services/lambda.html#Lambda.Client.remove_permission

    :return: True if a statement was removed, False if there was no such statement.
    """
    try:
        exponential_retry(
            lambda_client.remove_permission,
            LAMBDA_CLIENT_RETRYABLE_EXCEPTION_LIST,
            FunctionName=function_name,
            StatementId=statement_id,
        )
        logger.debug("removed permission %s from function: '%s'.", statement_id, function_name)
    except ClientError as error:
        if is_not_found(error):
            return False
        raise
    return True
