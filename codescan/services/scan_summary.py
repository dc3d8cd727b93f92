"""Aggregation of per-file results into a scan summary."""

from collections import Counter
from typing import Dict, List

from codescan.entities.analysis import Severity
from codescan.entities.scan_job import (
    FileResult,
    ModernizationPriority,
    Recommendation,
    ScanSummary,
)
from codescan.utils.numbers import round_half_up

LAYER_DESCRIPTIONS: Dict[int, str] = {
    1: "Configuration modernization",
    2: "Code patterns & imports",
    3: "Component fixes",
    4: "Hydration safety",
    5: "App Router migration",
    6: "Testing & TypeScript",
}

# Minutes of fix effort per issue by severity; anything else counts as "rest".
CRITICAL_FIX_MINUTES = 30
HIGH_FIX_MINUTES = 15
OTHER_FIX_MINUTES = 5


def estimate_fix_time(total: int, critical: int, high: int) -> str:
    minutes = (
        critical * CRITICAL_FIX_MINUTES
        + high * HIGH_FIX_MINUTES
        + (total - critical - high) * OTHER_FIX_MINUTES
    )
    if minutes < 60:
        return f"{minutes}m"
    # Hours to one decimal, halves rounded up.
    return f"{round_half_up(minutes / 6) / 10:g}h"


def _files_per_layer(results: List[FileResult]) -> Counter:
    counts: Counter = Counter()
    for result in results:
        for layer in set(result.recommended_layers):
            counts[layer] += 1
    return counts


def modernization_priority(results: List[FileResult]) -> List[ModernizationPriority]:
    """Rank recommended layers by the share of files that need them."""
    layer_files = _files_per_layer(results)

    total = len(results)
    priorities = []
    for layer, files in sorted(layer_files.items()):
        if files > total * 0.3:
            priority = "high"
        elif files > total * 0.1:
            priority = "medium"
        else:
            priority = "low"
        priorities.append(
            ModernizationPriority(
                layer=layer,
                description=LAYER_DESCRIPTIONS.get(layer, "Unknown"),
                files=files,
                priority=priority,
            )
        )
    return priorities


def generate_recommendations(results: List[FileResult]) -> List[Recommendation]:
    """Repository-wide advice when a layer is wanted by a large share of files."""
    layer_files = _files_per_layer(results)

    total = len(results)
    recommendations = []
    if layer_files[5] > total * 0.3:
        recommendations.append(
            Recommendation(
                title="Migrate to Next.js App Router",
                description=(
                    "Over 30% of your files could benefit from App Router migration "
                    "for better performance and developer experience."
                ),
                priority="high",
                effort="high",
                impact="high",
                layers=[5],
            )
        )
    if layer_files[3] > total * 0.4:
        recommendations.append(
            Recommendation(
                title="Fix Component Issues",
                description=(
                    "Many components have missing keys, accessibility issues, "
                    "or missing React imports."
                ),
                priority="medium",
                effort="medium",
                impact="medium",
                layers=[3],
            )
        )
    return recommendations


def build_summary(results: List[FileResult]) -> ScanSummary:
    successful = [r for r in results if r.success]
    severities: Counter = Counter()
    for result in successful:
        for issue in result.issues:
            severities[issue.severity] += 1

    issues_found = sum(len(r.issues) for r in successful)
    critical = severities[Severity.CRITICAL.value]
    high = severities[Severity.HIGH.value]

    if successful:
        debt_total = sum(
            r.technical_debt.score if r.technical_debt else 100 for r in successful
        )
        average_debt = round_half_up(debt_total / len(successful))
    else:
        average_debt = 100

    return ScanSummary(
        total_files=len(results),
        analyzed_files=len(successful),
        failed_files=len(results) - len(successful),
        issues_found=issues_found,
        critical_issues=critical,
        high_issues=high,
        medium_issues=severities[Severity.MEDIUM.value],
        low_issues=severities[Severity.LOW.value],
        average_technical_debt=average_debt,
        estimated_fix_time=estimate_fix_time(issues_found, critical, high),
        modernization_priority=modernization_priority(results),
        recommendations=generate_recommendations(results),
    )
