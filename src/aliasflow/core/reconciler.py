# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

"""Alias reconciliation workflow.

Each function goes through the following states, strictly in sequence and one function at a time:

    DISCOVER -> PUBLISH                        (no published version yet)
    DISCOVER -> DETECT_CHANGES -> PUBLISH      (changed)
                               -> USE_LATEST   (unchanged, no alias yet)
                               -> SKIP         (unchanged, alias already correct; excluded from synchronization)
    -> ALIAS_CONVERGE -> SYNC_HTTP -> SYNC_WEBSOCKET -> DONE

Gateways are synchronized protocol by protocol once all of the aliases are converged, followed by a single gateway
deployment per protocol. Per-function failures are recorded and do not stop the batch, failures of the run scoped
prerequisites (account id, routing listings, gateway deployments) abort the run.
"""

import logging
from enum import Enum, unique
from typing import Callable, List, Optional, Sequence, Tuple

import boto3

from aliasflow.core.config import AliasConfig
from aliasflow.core.context import RunContext
from aliasflow.core.definitions.aws.aws_lambda.client_wrapper import get_alias
from aliasflow.core.model import AliasDeployment, FunctionSpec, GatewayDeployment, ReconciliationResult
from aliasflow.core.sync.aliasing import converge_alias
from aliasflow.core.sync.change_detection import has_function_changes
from aliasflow.core.sync.deployment import deploy_rest_api, deploy_websocket_api
from aliasflow.core.sync.integration import IntegrationSynchronizer, ProtocolAdapter
from aliasflow.core.sync.publishing import UPDATE_POLL_INTERVAL_IN_SECS, UPDATE_POLL_MAX_ATTEMPTS, get_latest_published_version, publish_new_version
from aliasflow.core.sync.rest import RestApiAdapter
from aliasflow.core.sync.websocket import WebSocketApiAdapter

module_logger = logging.getLogger(__name__)


@unique
class VersionDecision(str, Enum):
    PUBLISH = "PUBLISH"
    USE_LATEST = "USE_LATEST"
    FORCE = "FORCE"
    SKIP = "SKIP"


class AliasReconciler:
    def __init__(
        self,
        config: AliasConfig,
        context: Optional[RunContext] = None,
        session: Optional[boto3.Session] = None,
        update_poll_max_attempts: int = UPDATE_POLL_MAX_ATTEMPTS,
        update_poll_interval_in_secs: float = UPDATE_POLL_INTERVAL_IN_SECS,
    ) -> None:
        self.config = config
        self.context = context if context is not None else RunContext(config.region, session)
        self._update_poll_max_attempts = update_poll_max_attempts
        self._update_poll_interval_in_secs = update_poll_interval_in_secs

    def reconcile(self, functions: Sequence[FunctionSpec]) -> ReconciliationResult:
        result = ReconciliationResult()
        module_logger.debug("Starting alias deployment workflow...")
        # resolved once up-front, a failure here aborts the run
        _ = self.context.account_id

        functions = [spec for spec in functions if spec.name not in self.config.excluded_functions]
        if not functions:
            module_logger.warning("No functions to process for alias deployment. Exiting.")
            return result

        module_logger.debug(f"Found {len(functions)} functions to process for alias deployment.")
        deployments = self.converge_aliases(functions, result)

        if not deployments:
            module_logger.warning("No aliases were created or updated. Consider using the force flag to force alias deployment if needed.")
            self._log_failures(result)
            return result

        http_deployments = [deployment for deployment in deployments if deployment.spec.http_events]
        websocket_deployments = [deployment for deployment in deployments if deployment.spec.websocket_events]

        if http_deployments and self.config.rest_api_id:
            self._synchronize_protocol(
                RestApiAdapter(self.context, self.config, self.config.rest_api_id),
                http_deployments,
                self.config.skip_api_gateway,
                deploy_rest_api,
                result,
            )
        elif http_deployments:
            module_logger.warning("HTTP events found but no REST API ID provided. Skipping HTTP integrations.")

        if websocket_deployments and self.config.websocket_api_id:
            self._synchronize_protocol(
                WebSocketApiAdapter(self.context, self.config, self.config.websocket_api_id),
                websocket_deployments,
                self.config.skip_websocket_gateway,
                deploy_websocket_api,
                result,
            )
        elif websocket_deployments:
            module_logger.warning("WebSocket events found but no WebSocket API ID provided. Skipping WebSocket integrations.")

        module_logger.info(f"Successfully deployed aliases for {len(result.deployed)} functions.")
        self._log_failures(result)
        return result

    def converge_aliases(self, functions: Sequence[FunctionSpec], result: ReconciliationResult) -> List[AliasDeployment]:
        module_logger.debug("Creating or updating Lambda function aliases...")
        for spec in functions:
            try:
                deployment = self.converge_function(spec)
            except Exception as error:
                module_logger.error(f"Error creating/updating alias for function {spec.function_name!r}: {error}")
                result.add_failure(spec.function_name)
                continue

            if deployment is None:
                result.skipped.append(spec.function_name)
            else:
                result.deployed.append(deployment)
        return list(result.deployed)

    def decide_version(self, spec: FunctionSpec, existing_alias) -> Tuple[VersionDecision, Optional[str]]:
        """Picks the version the alias should point to. The version is None for PUBLISH (not published yet) and SKIP."""
        latest_version = get_latest_published_version(self.context, spec.function_name)

        if self.config.force and latest_version:
            module_logger.debug(f"Force flag detected for function: {spec.function_name}. Using latest version {latest_version}")
            return VersionDecision.FORCE, latest_version

        if not latest_version:
            module_logger.debug(f"No existing versions for function: {spec.function_name}. Publishing new version...")
            return VersionDecision.PUBLISH, None

        comparison_version = existing_alias["FunctionVersion"] if existing_alias else latest_version
        if has_function_changes(self.context, spec, comparison_version, existing_alias):
            module_logger.debug(f"Changes detected for function: {spec.function_name}. Publishing new version...")
            return VersionDecision.PUBLISH, None

        if not existing_alias:
            module_logger.debug(f"No changes detected for new function: {spec.function_name}. Using latest version {latest_version}")
            return VersionDecision.USE_LATEST, latest_version

        module_logger.debug(f"No changes detected for existing function alias: {spec.function_name}:{self.config.alias}. Skipping.")
        return VersionDecision.SKIP, None

    def converge_function(self, spec: FunctionSpec) -> Optional[AliasDeployment]:
        """:return: the alias produced for the function, None if the function is skipped."""
        alias_name = self.config.alias
        existing_alias = get_alias(self.context.lambda_client, spec.function_name, alias_name)

        decision, version = self.decide_version(spec, existing_alias)
        if decision == VersionDecision.SKIP:
            return None
        if decision == VersionDecision.PUBLISH:
            version = publish_new_version(self.context, spec, self._update_poll_max_attempts, self._update_poll_interval_in_secs)

        alias = converge_alias(self.context, spec.function_name, alias_name, version)
        module_logger.info(f"Created/updated alias {alias_name!r} for function {spec.function_name!r} pointing to version {version}")
        return AliasDeployment(spec, alias_name, alias.get("AliasArn"), version)

    def _synchronize_protocol(
        self,
        adapter: ProtocolAdapter,
        deployments: Sequence[AliasDeployment],
        skip_deployment: bool,
        deploy: Callable[[RunContext, AliasConfig], GatewayDeployment],
        result: ReconciliationResult,
    ) -> None:
        try:
            adapter.load()
        except Exception as error:
            module_logger.error(f"Error getting {adapter.protocol} API Gateway routing objects: {error}")
            raise

        synchronized = IntegrationSynchronizer(adapter).synchronize(deployments, result)
        if not synchronized:
            module_logger.warning(f"No {adapter.protocol} integrations were synchronized. Skipping deployment.")
            return

        if skip_deployment:
            module_logger.info(f"{adapter.protocol} API Gateway integrations updated, deployment skipped as configured.")
            return

        try:
            result.gateway_deployments.append(deploy(self.context, self.config))
        except Exception as error:
            module_logger.error(f"Error deploying {adapter.protocol} API Gateway: {error}")
            raise
        module_logger.info(f"{adapter.protocol} API Gateway deployed and integrations updated successfully.")

    @staticmethod
    def _log_failures(result: ReconciliationResult) -> None:
        if result.failed:
            module_logger.warning(f"WARNING: Failed to process aliases for {len(result.failed)} functions: {', '.join(result.failed)}")
