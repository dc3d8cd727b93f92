"""
Analysis value objects - what the external analyzer reports for one file.

These are embedded in scan jobs and integration runs, never stored on their own.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class Severity(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class DebtCategory(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    MODERATE = "moderate"
    HIGH = "high"
    CRITICAL = "critical"


class Issue(BaseModel):
    """A single finding reported by the analyzer."""

    model_config = ConfigDict(use_enum_values=True)

    type: str
    severity: Severity = Severity.MEDIUM
    description: str = "No description available"
    line: Optional[int] = None
    column: Optional[int] = None
    rule: str = "unknown-rule"
    fix_available: bool = True

    @classmethod
    def from_raw(cls, raw: Dict[str, Any]) -> "Issue":
        """Normalize an analyzer issue payload, tolerating missing keys."""
        loc = raw.get("loc") or {}
        severity = raw.get("severity")
        if severity not in {s.value for s in Severity}:
            severity = Severity.MEDIUM
        fix_available = raw.get("fixAvailable", raw.get("fix_available"))
        return cls(
            type=raw.get("type") or raw.get("rule") or "Unknown Issue",
            severity=severity,
            description=raw.get("description")
            or raw.get("message")
            or "No description available",
            line=raw.get("line") or loc.get("line"),
            column=raw.get("column") or loc.get("column"),
            rule=raw.get("rule") or raw.get("type") or "unknown-rule",
            fix_available=fix_available is not False,
        )


class DebtFactor(BaseModel):
    factor: str
    impact: int
    description: str


class TechnicalDebt(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    score: int = 100
    category: DebtCategory = DebtCategory.EXCELLENT
    factors: List[DebtFactor] = Field(default_factory=list)


class EstimatedImpact(BaseModel):
    """Rough effort to modernize one file, derived from its issue mix."""

    model_config = ConfigDict(use_enum_values=True)

    level: Severity = Severity.LOW
    description: str = "Code appears to be well-structured"
    estimated_fix_time: str = "0m"


class AnalysisOutcome(BaseModel):
    """Result of analyzing one file."""

    success: bool = True
    issues: List[Issue] = Field(default_factory=list)
    confidence: float = 0.0
    recommended_layers: List[int] = Field(default_factory=list)
    technical_debt: Optional[TechnicalDebt] = None
    estimated_impact: Optional[EstimatedImpact] = None
    error: Optional[str] = None
