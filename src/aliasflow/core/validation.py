# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

import logging
from typing import Any, List, Mapping

from aliasflow.core.config import AliasConfig
from aliasflow.core.errors import InvalidAliasConfiguration
from aliasflow.core.model import HttpEvent, WebSocketEvent, parse_events
from aliasflow.core.sync.stage_variables import build_stage_var_key, is_safe_stage_var_key

module_logger = logging.getLogger(__name__)

VALID_HTTP_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "ANY"]

VALID_METHOD_SETTINGS = [
    "cacheDataEncrypted",
    "cacheTtlInSeconds",
    "cachingEnabled",
    "dataTraceEnabled",
    "loggingLevel",
    "metricsEnabled",
    "requireAuthorizationForCacheControl",
    "throttlingBurstLimit",
    "throttlingRateLimit",
    "unauthorizedCacheControlHeaderStrategy",
]

# names starting with '$' are reserved, custom route keys are unrestricted
PREDEFINED_WEBSOCKET_ROUTES = ["$connect", "$disconnect", "$default"]


def validate_http_events(func_name: str, events: List[HttpEvent]) -> List[str]:
    violations: List[str] = []
    for event in events:
        if not event.method:
            continue
        if event.method not in VALID_HTTP_METHODS:
            violations.append(
                f"Function '{func_name}' has invalid HTTP method '{event.method}'. Valid methods are: {', '.join(VALID_HTTP_METHODS)}"
            )
        for setting in event.method_settings:
            if setting not in VALID_METHOD_SETTINGS:
                violations.append(
                    f"Function '{func_name}' has invalid method setting '{setting}'. Valid settings are: {', '.join(VALID_METHOD_SETTINGS)}"
                )
    return violations


def validate_websocket_events(func_name: str, events: List[WebSocketEvent]) -> List[str]:
    violations: List[str] = []
    for event in events:
        if not event.route:
            violations.append(f"Function '{func_name}' has a websocket event without a specified route")
            continue
        if event.route.startswith("$") and event.route not in PREDEFINED_WEBSOCKET_ROUTES:
            violations.append(
                f"Function '{func_name}' has invalid WebSocket route '{event.route}'. "
                f"Predefined routes are: {', '.join(PREDEFINED_WEBSOCKET_ROUTES)}"
            )
    return violations


def validate_configuration(functions: Mapping[str, Mapping[str, Any]], config: AliasConfig) -> None:
    """Statically checks the alias settings and the gateway events of every function of the service.

    Nothing is mutated, all of the violations are raised at once as :class:`InvalidAliasConfiguration`.
    """
    module_logger.debug("Validating configuration...")
    if not config.alias:
        raise InvalidAliasConfiguration(["Alias name is not defined. Configure it under custom.alias or rely on the stage."])

    violations: List[str] = []
    for func_name, func_def in functions.items():
        events = parse_events((func_def or {}).get("events"))
        if config.rest_api_id:
            violations.extend(validate_http_events(func_name, [event for event in events if isinstance(event, HttpEvent)]))
        if config.websocket_api_id:
            violations.extend(validate_websocket_events(func_name, [event for event in events if isinstance(event, WebSocketEvent)]))
        if config.per_function_stage_vars and not config.stage_var_sanitize:
            key = build_stage_var_key(config.stage_var_key_template, func_name, config.alias, sanitize=False)
            if not is_safe_stage_var_key(key):
                violations.append(
                    f"Function '{func_name}' resolves to invalid stage variable key '{key}'. "
                    f"Keys may only contain alphanumeric characters and underscores, enable stageVarSanitize or change stageVarKeyTemplate"
                )

    if violations:
        raise InvalidAliasConfiguration(violations)

    if config.skip_api_gateway:
        module_logger.warning(
            "WARNING: API Gateway deployment is disabled. Ensure APIs are deployed manually if integration URIs have changed."
        )
    if config.skip_websocket_gateway:
        module_logger.warning(
            "WARNING: WebSocket Gateway deployment is disabled. Ensure APIs are deployed manually if integration URIs have changed."
        )

    module_logger.debug("Configuration validated successfully.")
