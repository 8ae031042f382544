# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

import logging
from typing import Any, Dict, List, Mapping, Optional

from botocore.exceptions import ClientError

from aliasflow.core.context import RunContext
from aliasflow.core.definitions.aws.aws_lambda.client_wrapper import get_function_configuration
from aliasflow.core.definitions.aws.common import is_not_found
from aliasflow.core.model import FunctionSpec

module_logger = logging.getLogger(__name__)

# compared in this order, the first mismatch decides
CONFIGURATION_ATTRIBUTES = ["CodeSha256", "Handler", "Runtime", "MemorySize", "Timeout", "Role"]


def _environment_of(configuration: Mapping[str, Any]) -> Dict[str, str]:
    return (configuration.get("Environment") or {}).get("Variables") or {}


def _layer_arns_of(configuration: Mapping[str, Any]) -> List[str]:
    return sorted(layer["Arn"] for layer in configuration.get("Layers") or [])


def _configuration_diverges(latest: Mapping[str, Any], pinned: Mapping[str, Any], desired_env: Mapping[str, str]) -> Optional[str]:
    """Returns a short description of the first difference found between the pinned version and either the
    unqualified configuration or the desired environment, None if they match."""
    for attribute in CONFIGURATION_ATTRIBUTES:
        if latest.get(attribute) != pinned.get(attribute):
            return f"{attribute} differs"

    pinned_env = _environment_of(pinned)
    latest_env = _environment_of(latest)

    pinned_keys = sorted(pinned_env.keys())
    if pinned_keys != sorted(latest_env.keys()):
        return "environment keys differ from the latest configuration"
    if pinned_keys != sorted(desired_env.keys()):
        return "environment keys differ from the desired configuration"

    for key in pinned_keys:
        if pinned_env[key] != latest_env[key]:
            return f"environment variable {key!r} differs from the latest configuration"
    for key in pinned_keys:
        if pinned_env[key] != desired_env[key]:
            return f"environment variable {key!r} differs from the desired configuration"

    if _layer_arns_of(pinned) != _layer_arns_of(latest):
        return "layers differ"

    return None


def has_function_changes(
    context: RunContext, spec: FunctionSpec, comparison_version: str, active_alias: Optional[Mapping[str, Any]] = None
) -> bool:
    """Decides whether 'comparison_version' (the version the alias points to or the newest published one) is stale
    against the desired spec or the unqualified ($LATEST) configuration of the function.

    Any unexpected error yields True so that a needed update is never skipped silently.
    """
    function_name = spec.function_name
    try:
        latest_config = get_function_configuration(context.lambda_client, function_name)
        try:
            pinned_config = get_function_configuration(context.lambda_client, function_name, qualifier=comparison_version)
        except ClientError as error:
            if is_not_found(error):
                module_logger.debug(f"Version {comparison_version} of {function_name!r} not found, treating as a fresh deployment.")
                return True
            raise

        difference = _configuration_diverges(latest_config, pinned_config, spec.environment)
        if difference:
            module_logger.debug(f"Function {function_name!r} changed since version {comparison_version}: {difference}.")
            return True

        if active_alias is not None and active_alias.get("FunctionVersion") != comparison_version:
            # only the exact comparison version can serve as the no-change basis
            module_logger.debug(
                f"Alias of {function_name!r} points to {active_alias.get('FunctionVersion')}, not to version {comparison_version}."
            )
            return True
        return False
    except Exception as error:
        module_logger.error(f"Error checking function changes for {function_name!r}: {error}")
        return True
