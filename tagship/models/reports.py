"""End-of-run report model."""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field

from tagship.models.build import MatrixResult
from tagship.models.channels import PublishReport
from tagship.models.versioning import ReleaseVersion


class PipelineReport(BaseModel):
    """Everything a release run produced.

    ``aborted`` is set when the matrix failed; in that case ``publish`` is
    empty because no channel was attempted.
    """

    model_config = ConfigDict(frozen=True)

    run_id: str
    version: ReleaseVersion
    matrix: MatrixResult = MatrixResult()
    publish: PublishReport = PublishReport()
    aborted: bool = False
    abort_reason: str = ""
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: datetime | None = None

    @property
    def succeeded(self) -> bool:
        return not self.aborted and self.matrix.succeeded and self.publish.succeeded

    @property
    def exit_code(self) -> int:
        return 0 if self.succeeded else 1
