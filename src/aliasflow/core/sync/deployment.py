# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

import logging
from typing import Any, Dict, List, Mapping, Optional

from aliasflow.core.config import GLOBAL_STAGE_VAR_KEY, AliasConfig
from aliasflow.core.context import RunContext
from aliasflow.core.definitions.aws.apigateway import client_wrapper as rest_api
from aliasflow.core.definitions.aws.apigatewayv2 import client_wrapper as websocket_api
from aliasflow.core.model import ConvergenceAction, GatewayDeployment

module_logger = logging.getLogger(__name__)

DEPLOYMENT_DESCRIPTION_FORMAT = "Deployed by aliasflow for alias: {0}"


def desired_stage_variables(config: AliasConfig) -> Dict[str, str]:
    if config.skip_set_global_stage_var:
        return {}
    return {GLOBAL_STAGE_VAR_KEY: config.alias}


def plan_stage(
    existing_stage: Optional[Mapping[str, Any]],
    deployment_id: str,
    variables: Mapping[str, str],
    deployment_id_key: str,
    variables_key: str,
) -> ConvergenceAction:
    if existing_stage is None:
        return ConvergenceAction.CREATE
    current_variables = existing_stage.get(variables_key) or {}
    if existing_stage.get(deployment_id_key) == deployment_id and all(current_variables.get(key) == value for key, value in variables.items()):
        return ConvergenceAction.NOOP
    return ConvergenceAction.UPDATE


def deploy_rest_api(context: RunContext, config: AliasConfig) -> GatewayDeployment:
    """Creates a new deployment of the REST API and points the stage at it, setting the global alias variable unless
    per-function stage variables are in use."""
    api_id = config.rest_api_id
    stage = config.stage
    client = context.apigateway
    module_logger.debug(f"Deploying API Gateway (REST API ID: {api_id})...")

    deployment_id = rest_api.create_deployment(client, api_id, DEPLOYMENT_DESCRIPTION_FORMAT.format(config.alias))["id"]
    variables = desired_stage_variables(config)

    existing_stage = rest_api.get_stage(client, api_id, stage)
    action = plan_stage(existing_stage, deployment_id, variables, "deploymentId", "variables")
    if action == ConvergenceAction.CREATE:
        rest_api.create_stage(client, api_id, stage, deployment_id, variables)
        module_logger.debug(f"Created new REST API stage: {stage} with deployment {deployment_id}")
    elif action == ConvergenceAction.UPDATE:
        patch_operations: List[Dict[str, str]] = [{"op": "replace", "path": "/deploymentId", "value": deployment_id}]
        patch_operations.extend([{"op": "replace", "path": f"/variables/{key}", "value": value} for key, value in variables.items()])
        rest_api.update_stage(client, api_id, stage, patch_operations)
        module_logger.debug(f"Updated existing REST API stage: {stage} with deployment {deployment_id}")

    if variables:
        module_logger.debug(f"Set stage variable '{GLOBAL_STAGE_VAR_KEY}={config.alias}' for stage: {stage}")
    else:
        module_logger.info(f"Skipping setting global stage variable {GLOBAL_STAGE_VAR_KEY!r} (perFunctionStageVars={config.per_function_stage_vars}).")

    endpoint = f"https://{api_id}.execute-api.{context.region}.amazonaws.com/{stage}"
    module_logger.info(f"API Gateway endpoint: {endpoint}")
    return GatewayDeployment("HTTP", api_id, deployment_id, stage, endpoint)


def deploy_websocket_api(context: RunContext, config: AliasConfig) -> GatewayDeployment:
    api_id = config.websocket_api_id
    stage = config.stage
    client = context.apigatewayv2
    module_logger.debug(f"Deploying WebSocket API (API ID: {api_id})...")

    deployment_id = websocket_api.create_deployment(client, api_id, DEPLOYMENT_DESCRIPTION_FORMAT.format(config.alias))["DeploymentId"]
    variables = desired_stage_variables(config)

    existing_stage = websocket_api.get_stage(client, api_id, stage)
    action = plan_stage(existing_stage, deployment_id, variables, "DeploymentId", "StageVariables")
    if action == ConvergenceAction.CREATE:
        websocket_api.create_stage(client, api_id, stage, deployment_id, variables)
        module_logger.debug(f"Created new WebSocket stage: {stage} with deployment")
    elif action == ConvergenceAction.UPDATE:
        websocket_api.update_stage(client, api_id, stage, deployment_id, variables)
        module_logger.debug(f"Updated existing WebSocket stage: {stage} with new deployment")

    endpoint = f"wss://{api_id}.execute-api.{context.region}.amazonaws.com/{stage}"
    module_logger.info(f"WebSocket API endpoint: {endpoint}")
    return GatewayDeployment("WebSocket", api_id, deployment_id, stage, endpoint)
