# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

from typing import List, Sequence


class AliasFlowError(Exception):
    pass


class FunctionUpdateFailed(AliasFlowError):
    def __init__(self, function_name: str, reason: str) -> None:
        super().__init__(f"Function update failed: {reason}")
        self.function_name = function_name
        self.reason = reason


class FunctionUpdateTimedOut(AliasFlowError):
    def __init__(self, function_name: str, max_attempts: int) -> None:
        super().__init__(f"Function update timed out after {max_attempts} retries: {function_name}")
        self.function_name = function_name
        self.max_attempts = max_attempts


class InvalidAliasConfiguration(AliasFlowError):
    """Raised before any mutating call with every violation found in the configuration."""

    def __init__(self, violations: Sequence[str]) -> None:
        self.violations: List[str] = list(violations)
        super().__init__("Invalid API Gateway configuration found:\n" + "\n".join(self.violations))


class AliasDeploymentFailed(AliasFlowError):
    pass
