"""JSON report output."""

from __future__ import annotations

import json
from pathlib import Path

from visreg.models.comparison import ComparisonReport
from visreg.models.run_outputs import RunOutputs


def generate_json_report(
    report: ComparisonReport,
    outputs: RunOutputs,
    output_path: Path,
) -> None:
    """Write a machine-readable record of every comparison."""
    data = report.model_dump(mode="json")
    data["counts"] = report.counts()
    data["outputs"] = outputs.as_action_outputs()

    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w") as f:
        json.dump(data, f, indent=2, default=str)
