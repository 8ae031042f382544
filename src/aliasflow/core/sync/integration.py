# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

"""Protocol independent part of the integration synchronization.

For each alias produced in the run, every routing event of the adapter's protocol is resolved to its routing object
(REST resource, WebSocket route) and integration, the integration URI is rewritten to reference the function through
a stage variable and the invoke permission of the gateway is re-granted (remove, then add) under deterministic
statement ids.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, ClassVar, Dict, List, Optional, Sequence

from aliasflow.core.config import AliasConfig
from aliasflow.core.context import RunContext
from aliasflow.core.definitions.aws.apigateway.client_wrapper import build_invocation_uri
from aliasflow.core.definitions.aws.aws_lambda.client_wrapper import INVOKE_ACTION, add_permission, build_lambda_arn, remove_permission
from aliasflow.core.entity import CoreData
from aliasflow.core.model import AliasDeployment, ReconciliationResult
from aliasflow.core.sync.stage_variables import stage_var_expression

module_logger = logging.getLogger(__name__)

APIGATEWAY_PRINCIPAL = "apigateway.amazonaws.com"


class PermissionGrant(CoreData):
    def __init__(self, statement_id: str, source_arn: str) -> None:
        self.statement_id = statement_id
        self.source_arn = source_arn


class ProtocolAdapter(ABC):
    """Protocol specific lookups and payloads used by :class:`IntegrationSynchronizer`."""

    protocol: ClassVar[str]

    def __init__(self, context: RunContext, config: AliasConfig, api_id: str) -> None:
        self.context = context
        self.config = config
        self.api_id = api_id

    @abstractmethod
    def load(self) -> None:
        """Fetches the run scoped listings. Failures here are not isolated per function."""
        ...

    @abstractmethod
    def events_of(self, deployment: AliasDeployment) -> Sequence[Any]:
        ...

    @abstractmethod
    def describe(self, event: Any) -> str:
        ...

    @abstractmethod
    def resolve_routing_object(self, event: Any) -> Optional[Dict[str, Any]]:
        """Returns the routing object (resource, route) the event is bound to, None if it does not exist."""
        ...

    @abstractmethod
    def resolve_integration_target(self, routing_object: Dict[str, Any], event: Any) -> Optional[Dict[str, Any]]:
        """Returns the integration bound to the routing object, None if there is none."""
        ...

    @abstractmethod
    def update_integration(self, target: Dict[str, Any], uri: str) -> None:
        ...

    @abstractmethod
    def build_permission_grants(self, deployment: AliasDeployment, routing_object: Dict[str, Any], event: Any) -> List[PermissionGrant]:
        ...

    def build_invocation_uri(self, deployment: AliasDeployment) -> str:
        lambda_arn = build_lambda_arn(
            self.context.region, self.context.account_id, deployment.function_name, stage_var_expression(self.config, deployment.name)
        )
        return build_invocation_uri(self.context.region, lambda_arn)

    def permission_target(self, deployment: AliasDeployment) -> str:
        # the alias a per-function stage variable resolves to is only known at invoke time
        if self.config.per_function_stage_vars:
            return deployment.function_name
        return f"{deployment.function_name}:{self.config.alias}"


class IntegrationSynchronizer:
    def __init__(self, adapter: ProtocolAdapter) -> None:
        self.adapter = adapter

    def synchronize(self, deployments: Sequence[AliasDeployment], result: ReconciliationResult) -> List[AliasDeployment]:
        """Synchronizes the integrations of each deployment in order.

        A failure aborts the remaining events of that function only, it is recorded in 'result' and the batch goes on.
        :return: deployments that were synchronized without errors.
        """
        protocol = self.adapter.protocol
        module_logger.debug(f"Updating {protocol} API Gateway integrations for {len(deployments)} functions...")
        synchronized: List[AliasDeployment] = []
        for deployment in deployments:
            events = self.adapter.events_of(deployment)
            if not events:
                module_logger.debug(f"No {protocol} events found for function {deployment.name!r}. Skipping integration.")
                continue
            try:
                for event in events:
                    self.synchronize_event(deployment, event)
            except Exception as error:
                module_logger.error(f"Error updating {protocol} integrations for function {deployment.function_name!r}: {error}")
                result.add_failure(deployment.function_name)
            else:
                synchronized.append(deployment)
        return synchronized

    def synchronize_event(self, deployment: AliasDeployment, event: Any) -> bool:
        """:return: False if the event was skipped because its routing object or integration could not be found."""
        description = self.adapter.describe(event)
        routing_object = self.adapter.resolve_routing_object(event)
        if routing_object is None:
            module_logger.warning(f"Routing object not found for {description}. Skipping integration update.")
            return False

        target = self.adapter.resolve_integration_target(routing_object, event)
        if target is None:
            module_logger.warning(f"No integration found for {description}. Skipping integration update.")
            return False

        uri = self.adapter.build_invocation_uri(deployment)
        module_logger.debug(f"Updating integration for {description}")
        self.adapter.update_integration(target, uri)

        self.grant_invoke_permission(self.adapter.permission_target(deployment), self.adapter.build_permission_grants(deployment, routing_object, event))
        module_logger.info(f"Successfully updated integration for {description} to use stage var {stage_var_expression(self.adapter.config, deployment.name)}")
        return True

    def grant_invoke_permission(self, function_target: str, grants: Sequence[PermissionGrant]) -> None:
        lambda_client = self.adapter.context.lambda_client
        module_logger.debug(f"Adding permission for API Gateway to invoke Lambda: {function_target}")
        for grant in grants:
            try:
                remove_permission(lambda_client, function_target, grant.statement_id)
            except Exception as error:
                # add_permission below surfaces a real conflict
                module_logger.warning(f"Warning: {error}")

        for grant in grants:
            add_permission(lambda_client, function_target, grant.statement_id, INVOKE_ACTION, APIGATEWAY_PRINCIPAL, source_arn=grant.source_arn)
