from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from segment_merger.engine.grouping import classify
from segment_merger.errors import EmptyInputError


class Segment(BaseModel):
    model_config = ConfigDict(frozen=True)

    identifier: str = Field(..., description="Local path or name of the segment, unique within a run.")
    group: str = Field(..., description="Source group tag (main, bak<N> or bak).")
    chronological_offset: float = Field(0.0, description="Resolved start time in seconds, 0.0 when unknown.")
    resolved: bool = Field(False, description="Whether the offset came from the filename or the media header.")
    source: Optional[str] = Field(None, description="URL or path the segment was ingested from.")

    @classmethod
    def from_identifier(cls, identifier: str, numbered_backups: bool = True, source: Optional[str] = None) -> "Segment":
        return cls(identifier=identifier, group=classify(identifier, numbered_backups), source=source)


class MediaProbeResult(BaseModel):
    start_time: Optional[str] = Field(None, description="Container start time in seconds, or N/A.")


class GroupMergeMode(str, Enum):
    COPY = "copy"
    CONCAT = "concat"


class FinalStageMode(str, Enum):
    CONVERT = "convert"
    CONCAT_TRANSCODE = "concat_transcode"


class GroupOutput(BaseModel):
    tag: str
    segments: List[Segment]
    output_name: str
    mode: GroupMergeMode


class SegmentDiagnostic(BaseModel):
    identifier: str
    group: str
    position: int = Field(..., description="1-based position within the group.")
    offset: float
    resolved: bool


class ConcatenationPlan(BaseModel):
    group_outputs: List[GroupOutput]
    final_outputs: List[str]
    final_output_name: str = "final_merged.mp4"
    final_mode: FinalStageMode

    def with_final_outputs(self, names: List[str]) -> "ConcatenationPlan":
        """
        Return a copy of the plan whose final stage only merges ``names``.

        Used when some group merges failed and their intermediates do not exist.
        """
        if not names:
            raise EmptyInputError("No group was merged successfully")
        mode = FinalStageMode.CONVERT if len(names) == 1 else FinalStageMode.CONCAT_TRANSCODE
        return self.model_copy(update={"final_outputs": list(names), "final_mode": mode})
