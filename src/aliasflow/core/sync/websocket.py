# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

import logging
from typing import Any, Dict, List, Optional, Sequence

from overrides import overrides

from aliasflow.core.definitions.aws.apigateway.client_wrapper import build_execute_api_arn
from aliasflow.core.definitions.aws.apigatewayv2.client_wrapper import get_integrations, get_routes, update_integration_uri
from aliasflow.core.definitions.aws.common import sanitize_statement_id
from aliasflow.core.model import AliasDeployment
from aliasflow.core.sync.integration import PermissionGrant, ProtocolAdapter

module_logger = logging.getLogger(__name__)


def build_websocket_statement_id(api_id: str, alias_name: str, route_id: str) -> str:
    return sanitize_statement_id(f"apigateway-ws-{api_id}-{alias_name}-{route_id}")


def integration_id_of(route: Dict[str, Any]) -> Optional[str]:
    # route target format: 'integrations/<IntegrationId>'
    target = route.get("Target")
    return target.split("/")[-1] if target else None


class WebSocketApiAdapter(ProtocolAdapter):
    protocol = "WebSocket"

    @overrides
    def events_of(self, deployment: AliasDeployment) -> Sequence[Any]:
        return deployment.spec.websocket_events

    @overrides
    def describe(self, event: Any) -> str:
        return f"WebSocket route: {event.route}"

    def _routes(self):
        return self.context.routing_cache(
            f"websocket:{self.api_id}:routes", lambda: get_routes(self.context.apigatewayv2, self.api_id), lambda route: route.get("RouteKey")
        )

    def _integrations(self):
        return self.context.routing_cache(
            f"websocket:{self.api_id}:integrations",
            lambda: get_integrations(self.context.apigatewayv2, self.api_id),
            lambda integration: integration.get("IntegrationId"),
        )

    @overrides
    def load(self) -> None:
        module_logger.debug(f"Getting WebSocket API routes for API ID: {self.api_id}")
        self._routes()
        self._integrations()

    @overrides
    def resolve_routing_object(self, event: Any) -> Optional[Dict[str, Any]]:
        return self._routes().find(event.route)

    @overrides
    def resolve_integration_target(self, routing_object: Dict[str, Any], event: Any) -> Optional[Dict[str, Any]]:
        integration_id = integration_id_of(routing_object)
        if not integration_id:
            return None
        return self._integrations().find(integration_id)

    @overrides
    def update_integration(self, target: Dict[str, Any], uri: str) -> None:
        update_integration_uri(self.context.apigatewayv2, self.api_id, target["IntegrationId"], uri)

    @overrides
    def build_permission_grants(self, deployment: AliasDeployment, routing_object: Dict[str, Any], event: Any) -> List[PermissionGrant]:
        statement_id = build_websocket_statement_id(self.api_id, self.config.alias, routing_object["RouteId"])
        return [PermissionGrant(statement_id, build_execute_api_arn(self.context.region, self.context.account_id, self.api_id, f"*/{event.route}"))]
