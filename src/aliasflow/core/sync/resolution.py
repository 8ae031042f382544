# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

from typing import Any, Callable, Dict, List, Optional


class RoutingObjectCache:
    """Resolves lookup keys (resource path, route key, integration id) against a listing fetched once per run.

    Hits are memoized by key and never invalidated. A run does not need to observe its own writes through a fresh
    listing.
    """

    def __init__(self, items: List[Dict[str, Any]], key_of: Callable[[Dict[str, Any]], str]) -> None:
        self._items = items
        self._key_of = key_of
        self._memo: Dict[str, Dict[str, Any]] = {}

    def __len__(self) -> int:
        return len(self._items)

    def find(self, key: str) -> Optional[Dict[str, Any]]:
        if key in self._memo:
            return self._memo[key]
        for item in self._items:
            if self._key_of(item) == key:
                self._memo[key] = item
                return item
        return None
