"""
External analyzer adapter.

The analysis engine is an external capability: analyze(content, path,
options) -> AnalysisOutcome. HttpAnalyzer talks to it over HTTP; tests and
other deployments can pass any object with the same analyze() method.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Dict, List, Optional, Protocol

import httpx

from codescan.config import settings
from codescan.entities.analysis import (
    AnalysisOutcome,
    DebtCategory,
    DebtFactor,
    EstimatedImpact,
    Issue,
    Severity,
    TechnicalDebt,
)
from codescan.services.scan_summary import (
    CRITICAL_FIX_MINUTES,
    HIGH_FIX_MINUTES,
    OTHER_FIX_MINUTES,
)

logger = logging.getLogger(__name__)

SEVERITY_IMPACT: Dict[str, int] = {
    Severity.CRITICAL.value: 25,
    Severity.HIGH.value: 15,
    Severity.MEDIUM.value: 8,
    Severity.LOW.value: 3,
}
DEFAULT_IMPACT = 5


class AnalyzerError(Exception):
    """The analyzer could not produce a result for one file."""


class Analyzer(Protocol):
    def analyze(
        self, content: str, path: str, options: Optional[Dict[str, Any]] = None
    ) -> AnalysisOutcome: ...


def debt_category(score: int) -> DebtCategory:
    if score >= 90:
        return DebtCategory.EXCELLENT
    if score >= 75:
        return DebtCategory.GOOD
    if score >= 60:
        return DebtCategory.MODERATE
    if score >= 40:
        return DebtCategory.HIGH
    return DebtCategory.CRITICAL


def calculate_technical_debt(issues: List[Issue]) -> TechnicalDebt:
    """Start at 100 and subtract a severity-weighted impact per issue."""
    score = 100
    factors: List[DebtFactor] = []
    for issue in issues:
        impact = SEVERITY_IMPACT.get(issue.severity, DEFAULT_IMPACT)
        score = max(0, score - impact)
        factors.append(
            DebtFactor(factor=issue.type, impact=impact, description=issue.description)
        )
    return TechnicalDebt(score=score, category=debt_category(score), factors=factors)


def calculate_estimated_impact(issues: List[Issue]) -> EstimatedImpact:
    """Classify a file by its worst issues and estimate the fix effort."""
    total = len(issues)
    critical = sum(1 for i in issues if i.severity == Severity.CRITICAL.value)
    high = sum(1 for i in issues if i.severity == Severity.HIGH.value)

    if critical:
        minutes = (
            critical * CRITICAL_FIX_MINUTES
            + high * HIGH_FIX_MINUTES
            + (total - critical - high) * OTHER_FIX_MINUTES
        )
        return EstimatedImpact(
            level=Severity.CRITICAL,
            description=f"{critical} critical issues requiring immediate attention",
            estimated_fix_time=f"{math.ceil(minutes / 60)}h",
        )
    if high > 2:
        minutes = high * HIGH_FIX_MINUTES + (total - high) * OTHER_FIX_MINUTES
        return EstimatedImpact(
            level=Severity.HIGH,
            description=f"{high} high priority issues affecting code quality",
            estimated_fix_time=f"{math.ceil(minutes / 60)}h",
        )
    if total > 5:
        return EstimatedImpact(
            level=Severity.MEDIUM,
            description=f"{total} issues found, moderate modernization needed",
            estimated_fix_time=f"{total * OTHER_FIX_MINUTES}m",
        )
    if total:
        return EstimatedImpact(
            level=Severity.LOW,
            description=f"{total} minor issues",
            estimated_fix_time=f"{total * OTHER_FIX_MINUTES}m",
        )
    return EstimatedImpact()


def normalize_outcome(raw: Dict[str, Any]) -> AnalysisOutcome:
    """Build an AnalysisOutcome from an analyzer response body."""
    analysis = raw.get("analysis") or raw
    issues = [
        Issue.from_raw(item)
        for item in (analysis.get("detectedIssues") or analysis.get("issues") or [])
    ]
    try:
        confidence = float(analysis.get("confidence") or 0)
    except (TypeError, ValueError):
        confidence = 0.0
    confidence = min(1.0, max(0.0, confidence))

    return AnalysisOutcome(
        success=raw.get("success", True) is not False,
        issues=issues,
        confidence=confidence,
        recommended_layers=analysis.get("recommendedLayers")
        or analysis.get("recommended_layers")
        or raw.get("layers")
        or [],
        technical_debt=calculate_technical_debt(issues),
        estimated_impact=calculate_estimated_impact(issues),
        error=raw.get("error"),
    )


class HttpAnalyzer:
    """Analyzer reached through a JSON-over-HTTP endpoint."""

    def __init__(
        self,
        url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.url = url or settings.ANALYZER_URL
        self._http = httpx.Client(
            timeout=timeout or settings.ANALYZER_TIMEOUT, transport=transport
        )

    def analyze(
        self, content: str, path: str, options: Optional[Dict[str, Any]] = None
    ) -> AnalysisOutcome:
        try:
            response = self._http.post(
                self.url,
                json={"content": content, "path": path, "options": options or {}},
            )
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPStatusError as exc:
            raise AnalyzerError(
                f"Analyzer returned {exc.response.status_code} for {path}"
            ) from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise AnalyzerError(f"Analyzer request failed for {path}: {exc}") from exc

        outcome = normalize_outcome(body)
        if not outcome.success:
            raise AnalyzerError(outcome.error or f"Analysis failed for {path}")
        return outcome

    def close(self) -> None:
        self._http.close()


_analyzer: Analyzer | None = None


def get_analyzer() -> Analyzer:
    global _analyzer
    if _analyzer is None:
        _analyzer = HttpAnalyzer()
    return _analyzer
