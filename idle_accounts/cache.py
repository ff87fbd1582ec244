"""In-memory cache of per-user claim bags kept beside the durable store."""

from __future__ import annotations

import threading
from typing import Dict, Optional, Tuple

from .models import IdentityClaimBag


class MetadataCache:
    """Write-through claim cache without expiry or eviction."""

    def __init__(self) -> None:
        self._bags: Dict[Tuple[int, str], IdentityClaimBag] = {}
        self._lock = threading.Lock()

    def load(self, tenant_id: int, username: str) -> Optional[IdentityClaimBag]:
        with self._lock:
            bag = self._bags.get((tenant_id, username))
            return bag.copy() if bag is not None else None

    def store(self, tenant_id: int, bag: IdentityClaimBag) -> None:
        with self._lock:
            self._bags[(tenant_id, bag.username)] = bag.copy()

    def update_claim(self, tenant_id: int, username: str, claim_uri: str, value: str) -> IdentityClaimBag:
        """Set one claim, creating an empty bag for the user when none is cached."""

        key = (tenant_id, username)
        with self._lock:
            bag = self._bags.get(key)
            if bag is None:
                bag = IdentityClaimBag(username=username)
                self._bags[key] = bag
            bag.set_claim(claim_uri, value)
            return bag.copy()

    def __len__(self) -> int:
        with self._lock:
            return len(self._bags)


__all__ = ["MetadataCache"]
