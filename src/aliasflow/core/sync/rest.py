# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

import logging
from typing import Any, Dict, List, Optional, Sequence

from overrides import overrides

from aliasflow.core.definitions.aws.apigateway.client_wrapper import build_execute_api_arn, get_integration, get_resources, update_integration_uri
from aliasflow.core.definitions.aws.common import sanitize_statement_id
from aliasflow.core.model import AliasDeployment
from aliasflow.core.sync.integration import PermissionGrant, ProtocolAdapter

module_logger = logging.getLogger(__name__)

TEST_INVOKE_STAGE = "test-invoke-stage"


def build_rest_statement_ids(api_id: str, alias_name: str, method: str, resource_id: str) -> List[str]:
    """Statement ids for the deployed stages and for the console's test invocations, in that order."""
    return [
        sanitize_statement_id(f"apigateway-{api_id}-{alias_name}-{method}-{resource_id}"),
        sanitize_statement_id(f"apigateway-test-{api_id}-{alias_name}-{method}-{resource_id}"),
    ]


class RestApiAdapter(ProtocolAdapter):
    protocol = "HTTP"

    @overrides
    def events_of(self, deployment: AliasDeployment) -> Sequence[Any]:
        return deployment.spec.http_events

    @overrides
    def describe(self, event: Any) -> str:
        return f"path: {event.path}, method: {event.method}"

    def _resources(self):
        return self.context.routing_cache(
            f"rest:{self.api_id}:resources", lambda: get_resources(self.context.apigateway, self.api_id), lambda resource: resource.get("path")
        )

    @overrides
    def load(self) -> None:
        module_logger.debug(f"Getting API Gateway resources for REST API ID: {self.api_id}")
        self._resources()

    @overrides
    def resolve_routing_object(self, event: Any) -> Optional[Dict[str, Any]]:
        return self._resources().find(event.normalized_path)

    @overrides
    def resolve_integration_target(self, routing_object: Dict[str, Any], event: Any) -> Optional[Dict[str, Any]]:
        integration = get_integration(self.context.apigateway, self.api_id, routing_object["id"], event.method)
        if integration is None:
            return None
        module_logger.debug(f"Current integration: {integration}")
        return {"resourceId": routing_object["id"], "httpMethod": event.method, "uri": integration.get("uri")}

    @overrides
    def update_integration(self, target: Dict[str, Any], uri: str) -> None:
        update_integration_uri(self.context.apigateway, self.api_id, target["resourceId"], target["httpMethod"], uri)

    @overrides
    def build_permission_grants(self, deployment: AliasDeployment, routing_object: Dict[str, Any], event: Any) -> List[PermissionGrant]:
        stage_statement_id, test_statement_id = build_rest_statement_ids(self.api_id, self.config.alias, event.method, routing_object["id"])
        region = self.context.region
        account_id = self.context.account_id
        return [
            PermissionGrant(stage_statement_id, build_execute_api_arn(region, account_id, self.api_id, f"*/{event.method}{event.normalized_path}")),
            PermissionGrant(
                test_statement_id,
                build_execute_api_arn(region, account_id, self.api_id, f"{TEST_INVOKE_STAGE}/{event.method}{event.normalized_path}"),
            ),
        ]
