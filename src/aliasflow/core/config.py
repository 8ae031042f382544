# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

import logging
from typing import Any, Iterable, Mapping, Optional, Set

from aliasflow.core.entity import CoreData

module_logger = logging.getLogger(__name__)

DEFAULT_STAGE_VAR_KEY_TEMPLATE = "{functionName}Alias"
GLOBAL_STAGE_VAR_KEY = "alias"


class AliasConfig(CoreData):
    """Run-wide settings consumed by the reconciliation components.

    Parsing of the deployment descriptor is owned elsewhere, :meth:`from_service` only maps an already loaded
    serverless-style service mapping ('custom.alias', 'provider.apiGateway.restApiId', 'provider.websocketApiId')
    onto these settings.
    """

    def __init__(
        self,
        alias: str,
        stage: str,
        region: str,
        excluded_functions: Optional[Iterable[str]] = None,
        rest_api_id: Optional[str] = None,
        websocket_api_id: Optional[str] = None,
        skip_api_gateway: bool = False,
        skip_websocket_gateway: bool = False,
        per_function_stage_vars: bool = False,
        stage_var_key_template: str = DEFAULT_STAGE_VAR_KEY_TEMPLATE,
        stage_var_sanitize: bool = True,
        skip_set_global_stage_var: bool = False,
        verbose: bool = False,
        force: bool = False,
    ) -> None:
        self.alias = alias
        self.stage = stage
        self.region = region
        self.excluded_functions: Set[str] = set(excluded_functions) if excluded_functions else set()
        self.rest_api_id = rest_api_id
        self.websocket_api_id = websocket_api_id
        self.skip_api_gateway = skip_api_gateway
        self.skip_websocket_gateway = skip_websocket_gateway
        self.per_function_stage_vars = per_function_stage_vars
        self.stage_var_key_template = stage_var_key_template or DEFAULT_STAGE_VAR_KEY_TEMPLATE
        self.stage_var_sanitize = stage_var_sanitize
        # no single global key can represent every function in per-function mode
        self.skip_set_global_stage_var = per_function_stage_vars or skip_set_global_stage_var
        self.verbose = verbose
        self.force = force

    @classmethod
    def from_service(cls, service: Mapping[str, Any], stage: str, region: str, force: bool = False) -> "AliasConfig":
        custom_alias = (service.get("custom") or {}).get("alias") or {}
        provider = service.get("provider") or {}

        if isinstance(custom_alias, str):
            alias_name = custom_alias
            custom_alias = {}
        else:
            alias_name = custom_alias.get("name") or stage

        return cls(
            alias=alias_name,
            stage=stage,
            region=region,
            excluded_functions=custom_alias.get("excludedFunctions", []),
            rest_api_id=(provider.get("apiGateway") or {}).get("restApiId"),
            websocket_api_id=provider.get("websocketApiId"),
            skip_api_gateway=bool(custom_alias.get("skipApiGateway", False)),
            skip_websocket_gateway=bool(custom_alias.get("skipWebSocketGateway", False)),
            per_function_stage_vars=bool(custom_alias.get("perFunctionStageVars", False)),
            stage_var_key_template=custom_alias.get("stageVarKeyTemplate") or DEFAULT_STAGE_VAR_KEY_TEMPLATE,
            # on unless explicitly disabled
            stage_var_sanitize=custom_alias.get("stageVarSanitize") is not False,
            skip_set_global_stage_var=bool(custom_alias.get("skipSetGlobalStageVar", False)),
            verbose=bool(custom_alias.get("verbose", False)),
            force=force,
        )

    def log_summary(self, has_http_events: bool, has_websocket_events: bool) -> None:
        module_logger.info("Initialized with Alias: %s", self.alias)
        module_logger.debug("Region: %s", self.region)

        if self.excluded_functions:
            module_logger.debug("Excluded Functions: %s", ", ".join(sorted(self.excluded_functions)))

        if self.per_function_stage_vars:
            module_logger.debug(
                "Per-function stage variables ENABLED. Key template: %r (sanitize=%s).", self.stage_var_key_template, self.stage_var_sanitize
            )

        if has_http_events:
            if self.rest_api_id:
                module_logger.debug("HTTP API Gateway ID: %s", self.rest_api_id)
            else:
                module_logger.warning("No REST API ID found in provider config, HTTP API Gateway integrations will be skipped.")

        if has_websocket_events:
            if self.websocket_api_id:
                module_logger.debug("WebSocket API Gateway ID: %s", self.websocket_api_id)
            else:
                module_logger.warning("No WebSocket API ID found in provider config, WebSocket API Gateway integrations will be skipped.")

        if not has_http_events and not has_websocket_events:
            module_logger.warning("No API Gateway events detected in functions.")
