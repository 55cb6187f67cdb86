"""Reports run outputs back to the calling CI system."""

from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from typing import Iterator, Mapping

from visreg.models.run_outputs import RunOutputs

logger = logging.getLogger(__name__)


def in_github_actions(environ: Mapping[str, str] | None = None) -> bool:
    env = os.environ if environ is None else environ
    return env.get("GITHUB_ACTIONS") == "true"


@contextmanager
def log_group(title: str, environ: Mapping[str, str] | None = None) -> Iterator[None]:
    """Fold the enclosed log lines into a collapsible group on GitHub Actions."""
    grouped = in_github_actions(environ)
    if grouped:
        print(f"::group::{title}", flush=True)
    else:
        logger.info("--- %s ---", title)
    try:
        yield
    finally:
        if grouped:
            print("::endgroup::", flush=True)


def write_action_outputs(outputs: RunOutputs, environ: Mapping[str, str] | None = None) -> None:
    """Append ``key=value`` lines to the file named by GITHUB_OUTPUT, if any."""
    env = os.environ if environ is None else environ
    values = outputs.as_action_outputs()
    for key, value in values.items():
        logger.debug("Output %s=%s", key, value)

    output_file = env.get("GITHUB_OUTPUT")
    if not output_file:
        return
    with open(output_file, "a") as f:
        for key, value in values.items():
            f.write(f"{key}={value}\n")


def write_step_summary(
    outputs: RunOutputs, counts: dict[str, int] | None = None,
    environ: Mapping[str, str] | None = None,
) -> None:
    """Append a Markdown summary to the file named by GITHUB_STEP_SUMMARY, if any."""
    env = os.environ if environ is None else environ
    summary_file = env.get("GITHUB_STEP_SUMMARY")
    if not summary_file:
        return

    lines = ["### Visual regression", "", "| Output | Value |", "|---|---|"]
    for key, value in outputs.as_action_outputs().items():
        lines.append(f"| {key} | {value} |")
    if counts:
        lines += ["", "| Status | Screenshots |", "|---|---|"]
        for status, count in counts.items():
            lines.append(f"| {status} | {count} |")

    with open(summary_file, "a") as f:
        f.write("\n".join(lines) + "\n")
