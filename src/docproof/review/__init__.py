"""Two-phase accuracy and safety review."""

from .agent import ReviewAgent, extract_frontmatter_version, format_feedback, parse_review_response
from .models import ReviewIssue, ReviewVerdict

__all__ = [
    "ReviewAgent",
    "ReviewIssue",
    "ReviewVerdict",
    "extract_frontmatter_version",
    "format_feedback",
    "parse_review_response",
]
