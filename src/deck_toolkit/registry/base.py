"""
Module: registry.base

Purpose:
    Generic, thread-safe identifier registry. A registry is a pure cache over
    the on-disk package: scan() rebuilds it from the parts, allocation hands
    out collision-free ids from a monotonic counter, and validate() re-reads
    the parts without touching the cache.

    Concrete registries supply the id family: how to enumerate source parts,
    how to read (number, id, metadata) records from one part, how to format
    an id from a number, and how duplicates are classified.

Key Classes:
    - ScanRecord: One id occurrence found on disk
    - IdentifierRegistry: Abstract base (scan / allocate / register / validate)

Dependencies:
    - threading (std)
    - ..core.models.validation

Used By:
    - registry.shapes.ShapeIdRegistry
    - registry.relationships.RelationshipRegistry
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from collections import defaultdict
from typing import Any, Dict, Generic, Hashable, Iterable, List, NamedTuple, Optional, TypeVar

from ..core.errors import StructuralError
from ..core.models.validation import Finding, ValidationReport
from ..core.package import PackageLayout

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
M = TypeVar("M")


class ScanRecord(NamedTuple):
    """An identifier occurrence read from one part."""
    number: int
    key: Any
    meta: Any
    part: str


class IdentifierRegistry(ABC, Generic[K, M]):
    """
    Package-wide identifier registry.

    All map and counter access happens under one lock, so concurrent
    allocate/register calls never hand out the same id twice.

    Attributes:
        family: Human-readable id family name used in logs and findings
    """

    family = "identifier"

    def __init__(self, layout: PackageLayout):
        self._layout = layout
        self._entries: Dict[K, M] = {}
        self._lock = threading.Lock()
        self._max_seen = 0
        self._next = 1

    # ─────────────────────────────────────────────────────────────────────────
    # Family hooks
    # ─────────────────────────────────────────────────────────────────────────

    @abstractmethod
    def _source_parts(self) -> Iterable[str]:
        """Part names to scan, in deterministic order."""

    @abstractmethod
    def _read_part(self, part_name: str) -> List[ScanRecord]:
        """
        Read every valid id occurrence of one part.

        Malformed tokens are skipped. Raises StructuralError if the part
        cannot be parsed.
        """

    @abstractmethod
    def _format(self, number: int) -> K:
        """Id for a number."""

    @abstractmethod
    def _number(self, key: K) -> Optional[int]:
        """Number of an id (None if malformed)."""

    @abstractmethod
    def _scope(self, meta: M) -> Any:
        """Scope an id is registered under (slide index, source part)."""

    def _duplicate_findings(self, key: K, records: List[ScanRecord]) -> List[Finding]:
        """Findings for an id that occurs more than once on disk."""
        parts = ", ".join(sorted({r.part for r in records}))
        return [Finding.error(
            f"duplicate-{self.family}-id",
            f"{self.family} id {key} occurs {len(records)} times ({parts})",
        )]

    def _extra_findings(self, records: List[ScanRecord]) -> List[Finding]:
        """Family-specific checks over all scanned records."""
        return []

    # ─────────────────────────────────────────────────────────────────────────
    # Scan
    # ─────────────────────────────────────────────────────────────────────────

    @property
    def layout(self) -> PackageLayout:
        return self._layout

    def scan(self) -> int:
        """
        Rebuild the registry from disk.

        Later occurrences of an id overwrite earlier ones; duplicates are
        reported by validate(), not here.

        Returns:
            Number of distinct ids registered.

        Raises:
            StructuralError: If a part cannot be parsed.
        """
        records: List[ScanRecord] = []
        for part_name in self._source_parts():
            records.extend(self._read_part(part_name))

        with self._lock:
            self._entries = {}
            self._max_seen = 0
            for record in records:
                self._entries[record.key] = record.meta
                self._max_seen = max(self._max_seen, record.number)
            self._next = max(self._next, self._max_seen + 1)
            count = len(self._entries)

        logger.debug(f"Scanned {count} {self.family} ids (max={self._max_seen})")
        return count

    @property
    def max_seen(self) -> int:
        """Largest id number observed by the last scan."""
        with self._lock:
            return self._max_seen

    # ─────────────────────────────────────────────────────────────────────────
    # Allocation
    # ─────────────────────────────────────────────────────────────────────────

    def allocate_unique(self) -> K:
        """
        Allocate the next free id.

        Returns the smallest id above the running counter that is not
        registered. The counter only ever moves forward, so consecutive
        calls return strictly increasing ids. The id is not registered.
        """
        with self._lock:
            while True:
                candidate = self._format(self._next)
                self._next += 1
                if candidate not in self._entries:
                    return candidate

    def allocate_batch(self, count: int) -> List[K]:
        """
        Allocate ``count`` ids.

        Raises:
            ValueError: If count < 1.
        """
        if count < 1:
            raise ValueError(f"Batch size must be at least 1, got {count}")
        return [self.allocate_unique() for _ in range(count)]

    # ─────────────────────────────────────────────────────────────────────────
    # Registration
    # ─────────────────────────────────────────────────────────────────────────

    def register(self, key: K, meta: M) -> None:
        """
        Register an id.

        Raises:
            ValueError: If the id is malformed or registered with other metadata.
        """
        if self._number(key) is None:
            raise ValueError(f"Malformed {self.family} id: {key!r}")
        with self._lock:
            existing = self._entries.get(key)
            if existing is not None and existing != meta:
                raise ValueError(f"{self.family} id {key} is already registered")
            self._entries[key] = meta

    def unregister(self, key: K) -> bool:
        """Remove an id. Returns False if it was not registered."""
        with self._lock:
            return self._entries.pop(key, None) is not None

    def lookup(self, key: K) -> Optional[M]:
        with self._lock:
            return self._entries.get(key)

    def ids_for_scope(self, scope: Any) -> List[K]:
        """Ids registered under ``scope``, sorted by number."""
        with self._lock:
            keys = [k for k, meta in self._entries.items() if self._scope(meta) == scope]
        return sorted(keys, key=self._number)

    def all_ids(self) -> List[K]:
        with self._lock:
            keys = list(self._entries)
        return sorted(keys, key=self._number)

    def items(self) -> List[tuple]:
        with self._lock:
            pairs = list(self._entries.items())
        return sorted(pairs, key=lambda pair: self._number(pair[0]))

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    # ─────────────────────────────────────────────────────────────────────────
    # Validation
    # ─────────────────────────────────────────────────────────────────────────

    def validate(self) -> ValidationReport:
        """
        Check the on-disk ids against each other and against the registry.

        Read-only: the registry is not modified. Duplicate ids are reported
        by the family's duplicate policy; ids registered but absent from disk
        (and the reverse) are warnings. Unparseable parts are errors.
        """
        findings: List[Finding] = []
        records: List[ScanRecord] = []
        for part_name in self._source_parts():
            try:
                records.extend(self._read_part(part_name))
            except StructuralError as e:
                findings.append(Finding.error("malformed-part", str(e), part_name))

        by_key: Dict[K, List[ScanRecord]] = defaultdict(list)
        for record in records:
            by_key[record.key].append(record)
        for key, occurrences in by_key.items():
            if len(occurrences) > 1:
                findings.extend(self._duplicate_findings(key, occurrences))

        registered = set(self.all_ids())
        on_disk = set(by_key)
        for key in registered - on_disk:
            findings.append(Finding.warning(
                f"stale-{self.family}-id",
                f"{self.family} id {key} is registered but not present on disk",
            ))
        for key in on_disk - registered:
            findings.append(Finding.warning(
                f"unregistered-{self.family}-id",
                f"{self.family} id {key} is present on disk but not registered",
            ))

        findings.extend(self._extra_findings(records))
        return ValidationReport.of(findings)
