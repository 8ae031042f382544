# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

import logging
from typing import Any, Callable, Dict, Iterable, Optional

import boto3

from aliasflow.core.definitions.aws.common import get_aws_account_id, get_session
from aliasflow.core.sync.resolution import RoutingObjectCache

module_logger = logging.getLogger(__name__)


class RunContext:
    """State scoped to a single reconciliation run.

    Holds the boto3 session and the clients created from it, the caller's account id and the routing object caches.
    Each memoized value is populated at most once and then only read for the rest of the run.
    """

    def __init__(self, region: str, session: Optional[boto3.Session] = None) -> None:
        self.region = region
        self._session = session if session is not None else get_session(region)
        self._clients: Dict[str, Any] = {}
        self._account_id: Optional[str] = None
        self._routing_caches: Dict[str, RoutingObjectCache] = {}

    @property
    def session(self) -> boto3.Session:
        return self._session

    def _client(self, service_name: str):
        if service_name not in self._clients:
            self._clients[service_name] = self._session.client(service_name=service_name, region_name=self.region)
        return self._clients[service_name]

    @property
    def lambda_client(self):
        return self._client("lambda")

    @property
    def apigateway(self):
        return self._client("apigateway")

    @property
    def apigatewayv2(self):
        return self._client("apigatewayv2")

    @property
    def account_id(self) -> str:
        if self._account_id is None:
            module_logger.debug("Fetching AWS account ID...")
            try:
                self._account_id = get_aws_account_id(self._session, self.region)
            except Exception as error:
                module_logger.error(f"Error getting AWS account ID: {error}")
                raise
            module_logger.debug("AWS Account ID: %s", self._account_id)
        return self._account_id

    def routing_cache(self, cache_id: str, loader: Callable[[], Iterable[Dict[str, Any]]], key_of: Callable[[Dict[str, Any]], str]) -> RoutingObjectCache:
        """Returns the cache registered under 'cache_id', calling 'loader' for the full listing on first access only."""
        if cache_id not in self._routing_caches:
            self._routing_caches[cache_id] = RoutingObjectCache(list(loader()), key_of)
            module_logger.debug("Found %d routing objects for %s.", len(self._routing_caches[cache_id]), cache_id)
        return self._routing_caches[cache_id]
