"""Pull request comment composer: renders the visual change summary as Markdown."""

from __future__ import annotations

import html
import logging

from visreg.models.comparison import ComparisonReport, ComparisonStatus, ScreenshotComparison
from visreg.models.config import CompareConfig

logger = logging.getLogger(__name__)

REPORT_MARKER = "<!-- visreg-report -->"
HEADING = "## 📸 Visual Regression Changes Detected"


def _entry(comparison: ScreenshotComparison, alt: str) -> str:
    """A collapsible block for one screenshot."""
    name = html.escape(comparison.name)
    block = "<details>\n"
    block += f"<summary>📄 <strong>{name}</strong> (click to expand)</summary>\n\n"

    url = comparison.artifact.url if comparison.artifact else ""
    if url:
        block += '<div align="center">\n'
        block += f'  <img src="{html.escape(url, quote=True)}" alt="{html.escape(alt, quote=True)}" width="100%">\n'
        block += "</div>\n\n"
    elif comparison.skip_reason:
        block += f"*No comparison image: {html.escape(comparison.skip_reason)}.*\n\n"
    else:
        block += "*Image publishing is disabled.*\n\n"

    block += "</details>\n\n"
    return block


def build_comment(report: ComparisonReport, config: CompareConfig) -> str:
    """Render the comment body for all changed, new and deleted screenshots."""
    modified = report.by_status(ComparisonStatus.CHANGED)
    added = report.by_status(ComparisonStatus.NEW)
    deleted = report.by_status(ComparisonStatus.DELETED)

    body = f"{REPORT_MARKER}\n{HEADING}\n\n"

    if modified:
        body += f"### 🔄 Modified Screenshots ({len(modified)})\n\n"
        for c in modified:
            body += _entry(c, f"{c.name} comparison")

    if added:
        body += f"### 🆕 New Screenshots ({len(added)})\n\n"
        body += "*These screenshots were added in this PR (not present in the base branch)*\n\n"
        for c in added:
            body += _entry(c, c.name)

    if deleted:
        body += f"### 🗑️ Deleted Screenshots ({len(deleted)})\n\n"
        body += "*These screenshots were removed in this PR (present in base branch but not in this PR)*\n\n"
        for c in deleted:
            body += _entry(c, c.name)

    output_format = "animated GIF" if config.output_format == "animated-gif" else "side-by-side"
    body += "---\n\n"
    body += (
        "*Modified images show visual diffs with cropping to the changed region "
        f"({config.crop_padding}px padding above/below, minimum {config.crop_min_height}px height). "
        f"Output format: {output_format}.*"
    )
    logger.debug("Built comment body (%d chars)", len(body))
    return body
