# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

"""Entry points used by a deployment tool around its own deploy step.

    config = AliasConfig.from_service(service, stage="prod", region="us-east-1")
    validate_configuration(service, config)   # before deploying
    ...
    deploy_aliases(service, config)           # after a successful deployment
"""

import logging
from typing import Any, Mapping, Optional

import boto3

from aliasflow._logging_config import init_basic_logging, set_verbose
from aliasflow.core.config import AliasConfig
from aliasflow.core.errors import AliasDeploymentFailed
from aliasflow.core.model import ReconciliationResult, build_function_specs, detect_event_types
from aliasflow.core.reconciler import AliasReconciler
from aliasflow.core.validation import validate_configuration as _validate_functions

__all__ = ["AliasConfig", "AliasReconciler", "validate_configuration", "deploy_aliases", "initialize", "init_basic_logging"]

module_logger = logging.getLogger(__name__)


def initialize(service: Mapping[str, Any], config: AliasConfig) -> None:
    set_verbose(config.verbose)
    has_http_events, has_websocket_events = detect_event_types(service.get("functions") or {})
    config.log_summary(has_http_events, has_websocket_events)


def validate_configuration(service: Mapping[str, Any], config: AliasConfig) -> None:
    """Raises :class:`aliasflow.core.errors.InvalidAliasConfiguration` listing every violation, mutates nothing."""
    _validate_functions(service.get("functions") or {}, config)


def deploy_aliases(service: Mapping[str, Any], config: AliasConfig, session: Optional[boto3.Session] = None) -> ReconciliationResult:
    """Idempotent reconciliation of the aliases and gateway integrations of the service's functions.

    Per-function failures are reported in the result, any other failure is raised as :class:`AliasDeploymentFailed`.
    """
    try:
        return AliasReconciler(config, session=session).reconcile(build_function_specs(service, config))
    except Exception as error:
        module_logger.error(f"Error in alias deployment workflow: {error}")
        raise AliasDeploymentFailed(f"Alias deployment failed: {error}") from error
