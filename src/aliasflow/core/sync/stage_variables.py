# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

import re

from aliasflow.core.config import DEFAULT_STAGE_VAR_KEY_TEMPLATE, GLOBAL_STAGE_VAR_KEY, AliasConfig

# stage variable names are limited to [A-Za-z0-9_]
STAGE_VAR_KEY_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_]")

FUNCTION_NAME_PLACEHOLDER = "{functionName}"
ALIAS_NAME_PLACEHOLDER = "{aliasName}"


def build_stage_var_key(template: str, function_name: str, alias_name: str, sanitize: bool = True) -> str:
    """Derives the per-function stage variable key, e.g 'audiencesAlias' for the default template."""
    template = template or DEFAULT_STAGE_VAR_KEY_TEMPLATE
    key = template.replace(FUNCTION_NAME_PLACEHOLDER, function_name or "function").replace(ALIAS_NAME_PLACEHOLDER, alias_name or "")
    if sanitize:
        key = STAGE_VAR_KEY_UNSAFE_CHARS.sub("_", key)
    return key


def is_safe_stage_var_key(key: str) -> bool:
    return bool(key) and not STAGE_VAR_KEY_UNSAFE_CHARS.search(key)


def stage_var_key_for_function(config: AliasConfig, function_name: str) -> str:
    if not config.per_function_stage_vars:
        return GLOBAL_STAGE_VAR_KEY
    return build_stage_var_key(config.stage_var_key_template, function_name, config.alias, config.stage_var_sanitize)


def stage_var_expression(config: AliasConfig, function_name: str) -> str:
    """Expression embedded into integration URIs in place of a literal alias, resolved by the stage at invoke time.

    global:  ${stageVariables.alias}
    per-fn:  ${stageVariables.<key>}
    """
    return "${stageVariables.%s}" % stage_var_key_for_function(config, function_name)
