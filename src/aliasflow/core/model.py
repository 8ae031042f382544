# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

import logging
from enum import Enum, unique
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from aliasflow.core.config import AliasConfig
from aliasflow.core.entity import CoreData

module_logger = logging.getLogger(__name__)


@unique
class ConvergenceAction(str, Enum):
    """Outcome of probing a remote object (alias, stage) against its desired state."""

    CREATE = "CREATE"
    NOOP = "NOOP"
    UPDATE = "UPDATE"


def normalize_path(path: str) -> str:
    return path if path.startswith("/") else f"/{path}"


class HttpEvent(CoreData):
    def __init__(self, path: str, method: str, cors: Any = False, method_settings: Optional[Dict[str, Any]] = None) -> None:
        self.path = path
        self.method = method.upper() if method else method
        self.cors = cors
        self.method_settings = dict(method_settings) if method_settings else {}

    @property
    def normalized_path(self) -> str:
        return normalize_path(self.path)


class WebSocketEvent(CoreData):
    def __init__(self, route: Optional[str]) -> None:
        self.route = route


RoutingEvent = Union[HttpEvent, WebSocketEvent]


class FunctionSpec(CoreData):
    """Desired state of a single managed function, built once per run."""

    def __init__(
        self,
        name: str,
        function_name: str,
        handler: Optional[str] = None,
        environment: Optional[Mapping[str, str]] = None,
        description: str = "",
        events: Optional[Sequence[RoutingEvent]] = None,
    ) -> None:
        # logical name (as declared in the service), physical name (as deployed)
        self.name = name
        self.function_name = function_name
        self.handler = handler
        # Lambda only stores string values
        self.environment: Dict[str, str] = {str(key): str(value) for key, value in (environment or {}).items()}
        self.description = description or ""
        self.events: Tuple[RoutingEvent, ...] = tuple(events) if events else tuple()

    @property
    def http_events(self) -> List[HttpEvent]:
        return [event for event in self.events if isinstance(event, HttpEvent)]

    @property
    def websocket_events(self) -> List[WebSocketEvent]:
        return [event for event in self.events if isinstance(event, WebSocketEvent)]


class AliasDeployment(CoreData):
    """An alias produced (created, updated or confirmed) for a function in the current run."""

    def __init__(self, spec: FunctionSpec, alias_name: str, alias_arn: Optional[str], version: str) -> None:
        self.spec = spec
        self.alias_name = alias_name
        self.alias_arn = alias_arn
        self.version = version

    @property
    def name(self) -> str:
        return self.spec.name

    @property
    def function_name(self) -> str:
        return self.spec.function_name


class GatewayDeployment(CoreData):
    def __init__(self, protocol: str, api_id: str, deployment_id: str, stage: str, endpoint: str) -> None:
        self.protocol = protocol
        self.api_id = api_id
        self.deployment_id = deployment_id
        self.stage = stage
        self.endpoint = endpoint


class ReconciliationResult(CoreData):
    def __init__(self) -> None:
        self.deployed: List[AliasDeployment] = []
        # physical names of the functions left untouched (alias already correct)
        self.skipped: List[str] = []
        self.failed: List[str] = []
        self.gateway_deployments: List[GatewayDeployment] = []

    def add_failure(self, function_name: str) -> None:
        if function_name not in self.failed:
            self.failed.append(function_name)


# Desired-state helpers
# ---------------------
def parse_http_event(http: Union[str, Mapping[str, Any]]) -> HttpEvent:
    """Supports both the mapping form and the 'METHOD path' shorthand (e.g 'get users/create')."""
    if isinstance(http, str):
        method, _, path = http.strip().partition(" ")
        return HttpEvent(path=path.strip(), method=method)
    return HttpEvent(
        path=http.get("path", ""),
        method=http.get("method", ""),
        cors=http.get("cors", False),
        method_settings=http.get("methodSettings"),
    )


def parse_websocket_event(websocket: Union[str, Mapping[str, Any], None]) -> WebSocketEvent:
    if isinstance(websocket, str):
        return WebSocketEvent(route=websocket)
    return WebSocketEvent(route=(websocket or {}).get("route"))


def parse_events(raw_events: Optional[Sequence[Mapping[str, Any]]]) -> List[RoutingEvent]:
    events: List[RoutingEvent] = []
    for raw_event in raw_events or []:
        if raw_event.get("http"):
            events.append(parse_http_event(raw_event["http"]))
        if "websocket" in raw_event:
            events.append(parse_websocket_event(raw_event["websocket"]))
    return events


def detect_event_types(functions: Mapping[str, Mapping[str, Any]]) -> Tuple[bool, bool]:
    has_http_events = False
    has_websocket_events = False
    for func_def in functions.values():
        for raw_event in (func_def or {}).get("events") or []:
            if raw_event.get("http"):
                has_http_events = True
            if "websocket" in raw_event:
                has_websocket_events = True

    module_logger.debug(f"Detected event types - HTTP: {has_http_events}, WebSocket: {has_websocket_events}")
    return has_http_events, has_websocket_events


def build_function_specs(service: Mapping[str, Any], config: AliasConfig) -> List[FunctionSpec]:
    """Maps the functions of a loaded service definition into specs, skipping the excluded ones.

    Function level environment variables override the provider level ones.
    """
    service_name = service.get("service")
    if isinstance(service_name, Mapping):
        service_name = service_name.get("name")
    provider_env = (service.get("provider") or {}).get("environment") or {}

    specs: List[FunctionSpec] = []
    for func_name, func_def in (service.get("functions") or {}).items():
        if func_name in config.excluded_functions:
            module_logger.debug(f"Skipping excluded function: {func_name}")
            continue
        func_def = func_def or {}
        merged_env = dict(provider_env)
        merged_env.update(func_def.get("environment") or {})

        specs.append(
            FunctionSpec(
                name=func_name,
                function_name=func_def.get("name") or f"{service_name}-{config.stage}-{func_name}",
                handler=func_def.get("handler"),
                environment=merged_env,
                description=func_def.get("description") or "",
                events=parse_events(func_def.get("events")),
            )
        )
    return specs
