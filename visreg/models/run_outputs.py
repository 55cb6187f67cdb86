"""Run outputs surfaced to the calling CI system."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel


class RunOutputs(BaseModel):
    screenshot_count: Optional[int] = None
    screenshot_directory: Optional[str] = None
    has_diffs: Optional[bool] = None
    comment_posted: Optional[bool] = None
    screenshots_committed: Optional[bool] = None

    def as_action_outputs(self) -> dict[str, str]:
        """Outputs that were set, keyed by their kebab-case action output name."""
        outputs = {}
        for field, value in self.model_dump(exclude_none=True).items():
            if isinstance(value, bool):
                value = "true" if value else "false"
            outputs[field.replace("_", "-")] = str(value)
        return outputs
