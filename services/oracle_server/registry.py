"""IndexRegistry — partition index → oracle identities.

Populated once by the registration coordinator and read by the event
dispatcher through ``matching()``.  Entries are append-only; nothing is
ever removed or rewritten.
"""

from __future__ import annotations

import threading
from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Tuple

import structlog

from shared.models.oracle import Identity
from services.oracle_server.errors import RegistryInvariantError

logger = structlog.get_logger(__name__)


class IndexRegistry:
    """Thread-safe mapping of partition index to registered identities.

    Parameters
    ----------
    max_index:
        Highest partition index the contract hands out (inclusive).
    """

    def __init__(self, max_index: int = 9):
        self.max_index = max_index
        self._by_index: Dict[int, List[Identity]] = defaultdict(list)
        self._by_address: Dict[str, Tuple[int, ...]] = {}
        self._lock = threading.Lock()

    # ── Writes ───────────────────────────────────────────────────────────

    def record(self, identity: Identity, indices: Iterable[int]) -> Tuple[int, ...]:
        """Record *identity* under each of *indices*.

        Recording the same identity again with the same index set is a
        no-op; with a different set it raises ``RegistryInvariantError``.
        Returns the normalised index tuple.
        """
        normalised = self._normalise(indices)
        with self._lock:
            existing = self._by_address.get(identity.address)
            if existing is not None:
                if existing == normalised:
                    logger.debug("registry_rerecord_ignored", account=identity.label)
                    return existing
                raise RegistryInvariantError(
                    f"{identity.label} already recorded under {list(existing)}, "
                    f"refusing {list(normalised)}"
                )
            self._by_address[identity.address] = normalised
            for index in normalised:
                self._by_index[index].append(identity)

        logger.info(
            "oracle_indices_recorded",
            account=identity.label,
            address=identity.address,
            indices=list(normalised),
        )
        return normalised

    def _normalise(self, indices: Iterable[int]) -> Tuple[int, ...]:
        try:
            items = list(indices)
        except TypeError as exc:
            raise ValueError(f"index set must be iterable, got {type(indices).__name__}") from exc
        seen: List[int] = []
        for raw in items:
            try:
                index = int(raw)
            except (TypeError, ValueError) as exc:
                raise ValueError(f"partition index {raw!r} is not an integer") from exc
            if index < 0 or index > self.max_index:
                raise ValueError(f"partition index {index} outside [0, {self.max_index}]")
            if index not in seen:
                seen.append(index)
        return tuple(seen)

    # ── Reads ────────────────────────────────────────────────────────────

    def matching(self, index: int) -> List[Identity]:
        """Identities holding *index*, in registration order."""
        with self._lock:
            return list(self._by_index.get(index, ()))

    def indices_for(self, identity: Identity) -> Optional[Tuple[int, ...]]:
        with self._lock:
            return self._by_address.get(identity.address)

    def snapshot(self) -> Dict[int, List[str]]:
        """Copy of the mapping as ``{index: [address, ...]}``, sorted by index."""
        with self._lock:
            return {
                index: [i.address for i in self._by_index[index]]
                for index in sorted(self._by_index)
            }

    def __len__(self) -> int:
        with self._lock:
            return len(self._by_address)

    def __contains__(self, identity: object) -> bool:
        if not isinstance(identity, Identity):
            return False
        with self._lock:
            return identity.address in self._by_address
