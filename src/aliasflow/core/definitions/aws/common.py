# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

import logging
import re
import time
from typing import Optional

import boto3
from botocore.exceptions import ClientError, WaiterError

module_logger = logging.getLogger(__name__)

AWS_DEFAULT_PARTITION = "aws"

# Lambda reports a missing function/alias/version/policy statement with the former,
# API Gateway (v1 and v2) reports missing resources/integrations/stages with the latter.
NOT_FOUND_ERROR_CODES = {"ResourceNotFoundException", "NotFoundException"}

# Lambda statement ids and API Gateway identifiers are limited to this set
STATEMENT_ID_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9\-_]")


def get_code_for_exception(error):
    if isinstance(error, ClientError) and "Code" in error.response["Error"]:
        return error.response["Error"]["Code"]
    elif isinstance(error, WaiterError) and "Error" in error.last_response:
        return error.last_response["Error"]["Code"]
    elif hasattr(error, "error_code"):
        return error.error_code

    return error.__class__.__name__


def is_not_found(error: Exception) -> bool:
    return get_code_for_exception(error) in NOT_FOUND_ERROR_CODES


def get_aws_account_id_from_arn(arn: str) -> str:
    return arn.split(":")[4]


# common AWS service errors
AWS_COMMON_RETRYABLE_ERRORS = [
    "TooManyRequestsException",
    "Throttling",
    "ThrottlingException",
    "RequestLimitExceeded",
    "Unavailable",
    "InternalFailure",
    "InternalError",
    "InternalServerError",
    "LimitExceededException",
    "ServiceUnavailable",
    "ServiceUnavailableException",
    # Now add botocore common retryable errors
    "ConnectTimeoutError",
    "ReadTimeoutError",
]


MAX_SLEEP_INTERVAL_PARAM = "_max_sleep_time_in_secs"
MAX_SLEEP_INTERVAL_DEFAULT = 64 + 1


def exponential_retry(func, service_retryable_errors, *func_args, **func_kwargs):
    """
    Retries the specified function with a simple exponential backoff algorithm.
    :param func: The function to retry.
    :param service_retryable_errors: AWS service specific retryable error codes. These are added to an internal list
                                    of AWS common retryable errors to get a final list of retryable errors. Anything else
                                    is raised without a retry.
    :param func_args: The positional arguments to pass to the function.
    :param func_kwargs: The keyword arguments to pass to the function.
    :return: The return value of the retried function.
    """
    retryables = list(AWS_COMMON_RETRYABLE_ERRORS)
    retryables.extend(service_retryable_errors)
    sleepy_time = 1
    if MAX_SLEEP_INTERVAL_PARAM in func_kwargs:
        max_sleepy_time = func_kwargs.get(MAX_SLEEP_INTERVAL_PARAM)
        del func_kwargs[MAX_SLEEP_INTERVAL_PARAM]
    else:
        max_sleepy_time = MAX_SLEEP_INTERVAL_DEFAULT
    func_return = None
    while True:
        try:
            func_return = func(*func_args, **func_kwargs)
            module_logger.debug("Ran %s, got %s.", func.__name__ if hasattr(func, "__name__") else str(func), func_return)
            break
        except Exception as error:
            error_code = get_code_for_exception(error)
            if error_code in retryables:
                module_logger.critical(
                    f"Sleeping for {sleepy_time} to give AWS time to " f"process the request. Retryable error_code={error_code!r}"
                )
                time.sleep(sleepy_time)
                sleepy_time = sleepy_time * 2
                if sleepy_time < max_sleepy_time:
                    continue
            raise
    return func_return


def sanitize_statement_id(seed: str) -> str:
    """Map every character outside of [a-zA-Z0-9-_] to '-' so that the result is a valid Lambda policy statement id.

    The mapping is deterministic, so the same inputs always yield the same id.
    """
    return STATEMENT_ID_UNSAFE_CHARS.sub("-", seed)


def get_session(region: str = None, profile_name: Optional[str] = None) -> boto3.Session:
    """
    Wrapper around boto3.Session()

    Parameters
    region: string, AWS region
    profile_name: string, named profile from the shared credentials file (system defaults if not specified)

    Returns
    boto3.Session
    """
    if not profile_name:
        # Use system defaults (~/.aws, etc).
        module_logger.debug("Creating boto3.Session with system defaults.")
        return boto3.Session(region_name=region)

    module_logger.debug("Creating boto3.Session with profile %r.", profile_name)
    return boto3.Session(profile_name=profile_name, region_name=region)


def get_caller_identity(session: boto3.Session, region: str) -> str:
    sts = session.client(service_name="sts", region_name=region)
    return exponential_retry(sts.get_caller_identity, ["AccessDenied"])["Arn"]


def get_aws_account_id(session: boto3.Session, region: str) -> str:
    user_arn = get_caller_identity(session, region)
    return get_aws_account_id_from_arn(user_arn)
