"""Story node, delta and issue records."""

from story_continuity.domain.models import (
    ContinuityIssue,
    Delta,
    DeltaIssue,
    DeltaOp,
    Goals,
    Hooks,
    Participant,
    Severity,
    StoryNode,
    WorldState,
)

__all__ = [
    "ContinuityIssue",
    "Delta",
    "DeltaIssue",
    "DeltaOp",
    "Goals",
    "Hooks",
    "Participant",
    "Severity",
    "StoryNode",
    "WorldState",
]
