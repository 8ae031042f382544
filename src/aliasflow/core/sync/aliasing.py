# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

import logging
from typing import Any, Dict, Optional

from aliasflow.core.context import RunContext
from aliasflow.core.definitions.aws.aws_lambda.client_wrapper import LATEST_VERSION, create_alias, get_alias, update_alias
from aliasflow.core.model import ConvergenceAction

module_logger = logging.getLogger(__name__)


def plan_alias(existing_alias: Optional[Dict[str, Any]], version: str) -> ConvergenceAction:
    if existing_alias is None:
        return ConvergenceAction.CREATE
    if existing_alias.get("FunctionVersion") == version:
        return ConvergenceAction.NOOP
    return ConvergenceAction.UPDATE


def converge_alias(context: RunContext, function_name: str, alias_name: str, version: str) -> Dict[str, Any]:
    """Points 'alias_name' of the function at 'version', issuing a mutating call only if the alias is missing or
    points elsewhere.

    :return: alias descriptor as returned by Lambda (the existing one in case of a no-op).
    """
    if not function_name:
        raise ValueError("Function name is required")
    if not version:
        raise ValueError("Function version is required")

    if version == LATEST_VERSION:
        module_logger.warning(f"Using {LATEST_VERSION} version for function {function_name!r} since no published versions found")

    description = f"Alias for {alias_name}"
    try:
        module_logger.debug(f"Checking if alias {alias_name!r} exists for function {function_name!r}")
        existing_alias = get_alias(context.lambda_client, function_name, alias_name)
        action = plan_alias(existing_alias, version)

        if action == ConvergenceAction.CREATE:
            module_logger.debug(f"Creating new alias {alias_name!r} for function {function_name!r} pointing to version {version}")
            return create_alias(context.lambda_client, function_name, alias_name, version, description)
        if action == ConvergenceAction.UPDATE:
            module_logger.debug(
                f"Updating alias {alias_name!r} for function {function_name!r} "
                f"from version {existing_alias['FunctionVersion']} to {version}"
            )
            return update_alias(context.lambda_client, function_name, alias_name, version, description)

        module_logger.debug(f"Alias {alias_name!r} for function {function_name!r} already points to version {version}. No update needed.")
        return existing_alias
    except Exception as error:
        module_logger.error(f"Error managing alias for function {function_name!r}: {error}")
        raise
