"""
Module: validation

Purpose:
    Integrity findings. Validation never raises for integrity problems;
    every check returns a ValidationReport holding zero or more findings in
    a deterministic order so that two runs over the same package compare
    equal.

Key Classes:
    - Severity: ERROR or WARNING
    - Finding: One integrity problem
    - ValidationReport: Ordered, immutable batch of findings

Used By:
    - registry (validate)
    - editing.slide_list, editing.timing_editor
    - session.session
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Iterator, Tuple


class Severity(str, Enum):
    """Finding severity."""
    ERROR = "error"
    WARNING = "warning"

    def __str__(self) -> str:
        return self.value


_SEVERITY_ORDER = {Severity.ERROR: 0, Severity.WARNING: 1}


@dataclass(frozen=True, slots=True)
class Finding:
    """
    A single integrity finding.

    Attributes:
        severity: ERROR or WARNING
        code: Stable machine-readable code, e.g. "duplicate-shape-id"
        message: Human-readable description
        part: Package-relative part the finding concerns ("" if package-wide)
    """
    severity: Severity
    code: str
    message: str
    part: str = ""

    @classmethod
    def error(cls, code: str, message: str, part: str = "") -> Finding:
        return cls(Severity.ERROR, code, message, part)

    @classmethod
    def warning(cls, code: str, message: str, part: str = "") -> Finding:
        return cls(Severity.WARNING, code, message, part)

    def sort_key(self) -> Tuple[int, str, str, str]:
        return (_SEVERITY_ORDER[self.severity], self.code, self.part, self.message)

    def __str__(self) -> str:
        where = f" [{self.part}]" if self.part else ""
        return f"{self.severity.value.upper()} {self.code}{where}: {self.message}"


@dataclass(frozen=True)
class ValidationReport:
    """
    Immutable, sorted batch of findings.

    Example:
        >>> report = ValidationReport.of([Finding.warning("w", "second"), Finding.error("e", "first")])
        >>> [f.code for f in report]
        ['e', 'w']
        >>> report.is_valid
        False
    """
    findings: Tuple[Finding, ...] = ()

    @classmethod
    def of(cls, findings: Iterable[Finding]) -> ValidationReport:
        """Build a report, sorting and de-duplicating findings."""
        unique = set(findings)
        return cls(tuple(sorted(unique, key=Finding.sort_key)))

    @property
    def errors(self) -> Tuple[Finding, ...]:
        return tuple(f for f in self.findings if f.severity == Severity.ERROR)

    @property
    def warnings(self) -> Tuple[Finding, ...]:
        return tuple(f for f in self.findings if f.severity == Severity.WARNING)

    @property
    def is_valid(self) -> bool:
        """No errors (warnings are allowed)."""
        return not self.errors

    def codes(self) -> Tuple[str, ...]:
        return tuple(f.code for f in self.findings)

    def merge(self, *others: ValidationReport) -> ValidationReport:
        combined = list(self.findings)
        for other in others:
            combined.extend(other.findings)
        return ValidationReport.of(combined)

    def summary(self) -> str:
        if not self.findings:
            return "No integrity problems found"
        lines = [f"{len(self.errors)} error(s), {len(self.warnings)} warning(s)"]
        lines.extend(f"  {finding}" for finding in self.findings)
        return "\n".join(lines)

    def __iter__(self) -> Iterator[Finding]:
        return iter(self.findings)

    def __len__(self) -> int:
        return len(self.findings)
