"""
Chat message templates for integration run notifications.

Each function returns the JSON body to POST to the channel's incoming webhook.

Slack docs: https://api.slack.com/messaging/composing/layouts#attachments
Teams docs: https://learn.microsoft.com/outlooklegacy/actionable-messages/message-card-reference
"""

from typing import Any, Dict

TITLE = "Analysis Complete"


def _commit_prefix(commit_sha: str) -> str:
    return commit_sha[:8]


def slack_run_completed(
    repository: str,
    branch: str,
    commit_sha: str,
    files_analyzed: int,
    issues_found: int,
    quality_score_pct: int,
    passed: bool,
) -> Dict[str, Any]:
    """Slack attachment-style message for a finished integration run."""
    return {
        "text": TITLE,
        "attachments": [
            {
                "color": "good" if passed else "danger",
                "fields": [
                    {"title": "Repository", "value": repository, "short": True},
                    {"title": "Branch", "value": branch, "short": True},
                    {"title": "Commit", "value": _commit_prefix(commit_sha), "short": True},
                    {"title": "Files Analyzed", "value": str(files_analyzed), "short": True},
                    {"title": "Issues Found", "value": str(issues_found), "short": True},
                    {"title": "Quality Score", "value": f"{quality_score_pct}%", "short": True},
                ],
            }
        ],
    }


def teams_run_completed(
    repository: str,
    branch: str,
    commit_sha: str,
    files_analyzed: int,
    issues_found: int,
    quality_score_pct: int,
    passed: bool,
) -> Dict[str, Any]:
    """Microsoft Teams MessageCard for a finished integration run."""
    return {
        "@type": "MessageCard",
        "@context": "http://schema.org/extensions",
        "themeColor": "00FF00" if passed else "FF0000",
        "summary": TITLE,
        "sections": [
            {
                "activityTitle": TITLE,
                "activitySubtitle": f"{repository} - {branch}",
                "facts": [
                    {"name": "Commit", "value": _commit_prefix(commit_sha)},
                    {"name": "Files Analyzed", "value": str(files_analyzed)},
                    {"name": "Issues Found", "value": str(issues_found)},
                    {"name": "Quality Score", "value": f"{quality_score_pct}%"},
                ],
            }
        ],
    }
