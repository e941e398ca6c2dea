# -*- coding: utf-8 -*-
"""
Provenance Tracking for the CBAM Engine - GL-CBAM-ENGINE

Provides a SHA-256 audit trail for every regulatory calculation and
validation the engine performs. Each record links to its predecessor so
that any later edit of a stored record breaks the chain.

Zero-Hallucination Guarantees:
    - All hashes are deterministic SHA-256 over canonical JSON
    - Chain hashing links operations in sequence
    - JSON export for external audit systems

Example:
    >>> from cbam_engine.provenance import ProvenanceTracker
    >>> tracker = ProvenanceTracker()
    >>> chain_hash = tracker.record("benchmark", "72083000", "resolve", "abc123")
    >>> valid, chain = tracker.verify_chain("benchmark", "72083000")
    >>> assert valid is True

Author: GreenLang CBAM Team
Date: March 2026
Status: Production Ready
"""

from __future__ import annotations

import hashlib
import json
import logging
import threading
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    """Return current UTC datetime with microseconds zeroed."""
    return datetime.now(timezone.utc).replace(microsecond=0)


def compute_hash(data: Any) -> str:
    """Return the SHA-256 hex digest of ``data`` serialised as canonical JSON."""
    if hasattr(data, "model_dump"):
        data = data.model_dump(mode="json")
    serialized = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(serialized.encode("utf-8")).hexdigest()


class ProvenanceTracker:
    """Chain-hashed operation log for CBAM engine operations.

    Entries are grouped by ``entity_type:entity_id`` and also kept in a
    single global chain. Every entry stores the chain hash of its
    predecessor, so :meth:`verify_chain` can recompute the links.

    Attributes:
        _chain_store: In-memory chain storage grouped by entity key.
        _global_chain: Flat list of all entries in order.
        _last_chain_hash: Most recent chain hash for linking.
        _lock: Thread-safety lock.
    """

    def __init__(self, genesis: str = "greenlang-cbam-engine-genesis") -> None:
        """Initialize ProvenanceTracker.

        Args:
            genesis: Seed string hashed into the genesis link.
        """
        self._genesis_hash = hashlib.sha256(genesis.encode("utf-8")).hexdigest()
        self._chain_store: Dict[str, List[Dict[str, Any]]] = {}
        self._global_chain: List[Dict[str, Any]] = []
        self._last_chain_hash: str = self._genesis_hash
        self._lock = threading.Lock()
        logger.info("ProvenanceTracker initialized")

    @property
    def genesis_hash(self) -> str:
        """Return the hash every chain starts from."""
        return self._genesis_hash

    def record(
        self,
        entity_type: str,
        entity_id: str,
        action: str,
        data_hash: str,
        user_id: str = "system",
    ) -> str:
        """Record a provenance entry for an entity operation.

        Args:
            entity_type: Type of entity (benchmark, free_allocation,
                entry_validation, materiality, data_quality, eori,
                submission).
            entity_id: Identifier of the entity (CN code, entry id, EORI).
            action: Action performed (resolve, calculate, validate, assess,
                score).
            data_hash: SHA-256 hash of the operation data.
            user_id: User who performed the operation.

        Returns:
            Chain hash of the new entry.
        """
        timestamp = _utcnow().isoformat()
        store_key = f"{entity_type}:{entity_id}"

        with self._lock:
            previous = self._last_chain_hash
            chain_hash = self._compute_chain_hash(
                previous, data_hash, action, timestamp,
            )
            entry = {
                "entity_type": entity_type,
                "entity_id": entity_id,
                "action": action,
                "data_hash": data_hash,
                "user_id": user_id,
                "timestamp": timestamp,
                "previous_hash": previous,
                "chain_hash": chain_hash,
            }
            self._chain_store.setdefault(store_key, []).append(entry)
            self._global_chain.append(entry)
            self._last_chain_hash = chain_hash

        logger.debug(
            "Recorded provenance: %s/%s action=%s hash=%s",
            entity_type, str(entity_id)[:16], action, chain_hash[:16],
        )
        return chain_hash

    def verify_chain(
        self,
        entity_type: Optional[str] = None,
        entity_id: Optional[str] = None,
    ) -> Tuple[bool, List[Dict[str, Any]]]:
        """Verify the integrity of a provenance chain.

        With no arguments the whole global chain is verified link by link.
        With an entity the entity's entries are each recomputed from their
        stored predecessor hash.

        Returns:
            Tuple of (is_valid, chain_entries).
        """
        if entity_type is None or entity_id is None:
            with self._lock:
                chain = list(self._global_chain)
            previous = self._genesis_hash
            for entry in chain:
                if entry["previous_hash"] != previous or not self._entry_ok(entry):
                    logger.warning(
                        "Global provenance chain broken at %s/%s",
                        entry["entity_type"], entry["entity_id"],
                    )
                    return False, chain
                previous = entry["chain_hash"]
            return True, chain

        with self._lock:
            chain = list(self._chain_store.get(f"{entity_type}:{entity_id}", []))
        for entry in chain:
            if not self._entry_ok(entry):
                logger.warning(
                    "Provenance chain verification failed for %s/%s",
                    entity_type, entity_id,
                )
                return False, chain
        return True, chain

    def _entry_ok(self, entry: Dict[str, Any]) -> bool:
        expected = self._compute_chain_hash(
            entry["previous_hash"], entry["data_hash"],
            entry["action"], entry["timestamp"],
        )
        return expected == entry["chain_hash"]

    def get_chain(self, entity_type: str, entity_id: str) -> List[Dict[str, Any]]:
        """Get the provenance chain for an entity, oldest first."""
        with self._lock:
            return list(self._chain_store.get(f"{entity_type}:{entity_id}", []))

    def get_global_chain(self, limit: int = 100) -> List[Dict[str, Any]]:
        """Get the global provenance chain, newest first."""
        with self._lock:
            return list(reversed(self._global_chain[-limit:]))

    def _compute_chain_hash(
        self,
        previous_hash: str,
        data_hash: str,
        action: str,
        timestamp: str,
    ) -> str:
        combined = json.dumps({
            "previous": previous_hash,
            "data": data_hash,
            "action": action,
            "timestamp": timestamp,
        }, sort_keys=True)
        return hashlib.sha256(combined.encode("utf-8")).hexdigest()

    @property
    def entry_count(self) -> int:
        """Return the total number of provenance entries."""
        with self._lock:
            return len(self._global_chain)

    @property
    def entity_count(self) -> int:
        """Return the number of unique entities tracked."""
        with self._lock:
            return len(self._chain_store)

    def export_json(self) -> str:
        """Export all provenance records as a JSON string."""
        with self._lock:
            data = list(self._global_chain)
        return json.dumps(data, indent=2, default=str)

    def build_hash(self, data: Any) -> str:
        """Build a SHA-256 hash for arbitrary data."""
        return compute_hash(data)


# ---------------------------------------------------------------------------
# Process-wide tracker
# ---------------------------------------------------------------------------

_tracker_instance: Optional[ProvenanceTracker] = None
_tracker_lock = threading.Lock()


def get_provenance_tracker() -> ProvenanceTracker:
    """Return the shared ProvenanceTracker, creating it on first use."""
    global _tracker_instance
    if _tracker_instance is None:
        with _tracker_lock:
            if _tracker_instance is None:
                from cbam_engine.config import get_config

                _tracker_instance = ProvenanceTracker(get_config().genesis_hash)
    return _tracker_instance


def reset_provenance_tracker() -> None:
    """Drop the shared tracker (primarily for test teardown)."""
    global _tracker_instance
    with _tracker_lock:
        _tracker_instance = None


__all__ = [
    "ProvenanceTracker",
    "compute_hash",
    "get_provenance_tracker",
    "reset_provenance_tracker",
]
