# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

import logging
import time
from typing import Optional

from botocore.exceptions import WaiterError

from aliasflow.core.context import RunContext
from aliasflow.core.definitions.aws.aws_lambda.client_wrapper import (
    LATEST_VERSION,
    function_exists,
    list_versions,
    publish_version,
    update_function_environment,
    wait_until_function_updated,
)
from aliasflow.core.definitions.aws.common import is_not_found
from aliasflow.core.errors import FunctionUpdateFailed, FunctionUpdateTimedOut
from aliasflow.core.model import FunctionSpec

module_logger = logging.getLogger(__name__)

UPDATE_POLL_MAX_ATTEMPTS = 30
UPDATE_POLL_INTERVAL_IN_SECS = 1


def get_latest_published_version(context: RunContext, function_name: str) -> Optional[str]:
    """Returns the numerically largest published version of the function.

    None if the function does not exist or has no numbered versions yet. Falls back to $LATEST if the versions
    cannot be listed.
    """
    module_logger.debug(f"Getting latest version for function: {function_name}")
    if not function_exists(context.lambda_client, function_name):
        module_logger.warning(f"Function {function_name!r} not found")
        return None

    try:
        numbered = [int(version["Version"]) for version in list_versions(context.lambda_client, function_name) if version["Version"] != LATEST_VERSION]
    except Exception as error:
        module_logger.warning(f"Error listing versions for {function_name!r}: {error}, falling back to {LATEST_VERSION}")
        return LATEST_VERSION

    if not numbered:
        module_logger.debug(f"No numbered versions found for function: {function_name}")
        return None
    return str(max(numbered))


def _is_timeout(error: WaiterError) -> bool:
    return "Max attempts exceeded" in str(error.kwargs.get("reason", ""))


def wait_for_function_update(
    context: RunContext,
    function_name: str,
    max_attempts: int = UPDATE_POLL_MAX_ATTEMPTS,
    poll_interval_in_secs: float = UPDATE_POLL_INTERVAL_IN_SECS,
) -> None:
    """Waits (via the 'function_updated' waiter) until the last configuration update of the function settles.

    A 'Failed' update raises :class:`FunctionUpdateFailed` right away, a missing function is raised as is. Any other
    error consumes one attempt and the wait is resumed with the remaining attempts.
    """
    module_logger.debug(f"Waiting for function update to complete: {function_name}")
    remaining_attempts = max_attempts
    while remaining_attempts > 0:
        try:
            wait_until_function_updated(context.lambda_client, function_name, poll_interval_in_secs, remaining_attempts)
            return
        except WaiterError as error:
            last_response = error.last_response or {}
            # LastUpdateStatus: Successful | Failed | InProgress
            if last_response.get("LastUpdateStatus") == "Failed":
                raise FunctionUpdateFailed(function_name, last_response.get("LastUpdateStatusReason") or "Unknown reason")
            if _is_timeout(error):
                break
            if is_not_found(error):
                raise
            module_logger.debug(f"Transient error while waiting for {function_name!r}: {error}")
        except Exception as error:
            if is_not_found(error):
                raise
            module_logger.debug(f"Transient error while waiting for {function_name!r}: {error}")
        remaining_attempts -= 1
        time.sleep(poll_interval_in_secs)

    raise FunctionUpdateTimedOut(function_name, max_attempts)


def publish_new_version(
    context: RunContext,
    spec: FunctionSpec,
    max_attempts: int = UPDATE_POLL_MAX_ATTEMPTS,
    poll_interval_in_secs: float = UPDATE_POLL_INTERVAL_IN_SECS,
) -> str:
    """Pushes the desired environment, waits for the update to settle and publishes an immutable version.

    The function must already exist, a missing function surfaces as the ResourceNotFoundException of the update.
    """
    module_logger.debug(f"Publishing new version for function: {spec.function_name}")
    try:
        update_function_environment(context.lambda_client, spec.function_name, spec.environment)
        wait_for_function_update(context, spec.function_name, max_attempts, poll_interval_in_secs)
        response = publish_version(context.lambda_client, spec.function_name, spec.description)
    except Exception as error:
        module_logger.error(f"Error publishing new version for function {spec.function_name!r}: {error}")
        raise
    return response["Version"]
