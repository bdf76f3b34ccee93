from __future__ import annotations

from enum import Enum
from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, JsonValue, model_validator
from pydantic.alias_generators import to_camel

WorldState = dict[str, Any]
NodeType = Literal["BEAT", "SCENE", "CHAPTER"]


class Severity(str, Enum):
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {Severity.INFO: 0, Severity.WARN: 1, Severity.ERROR: 2}


class DeltaOp(str, Enum):
    SET = "SET"
    INC = "INC"
    DEC = "DEC"
    ADD = "ADD"
    REMOVE = "REMOVE"


class _Record(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class Delta(_Record):
    key: str = Field(min_length=1)
    op: DeltaOp
    value: JsonValue = None

    @property
    def has_value(self) -> bool:
        """True when the record carried a ``value`` field, even an explicit null."""
        return "value" in self.model_fields_set


class Participant(_Record):
    entity_id: str = Field(min_length=1)
    role: str


class Goals(_Record):
    dramatic_goal: str = ""
    conflict: str = ""
    turn: str = ""


class Hooks(_Record):
    hook: str = ""
    foreshadow: list[str] = Field(default_factory=list)
    payoff_targets: list[str] = Field(default_factory=list)


class StoryNode(_Record):
    id: str = Field(min_length=1, validation_alias=AliasChoices("id", "_id"))
    order: int = Field(default=0, ge=0)
    node_type: NodeType = "SCENE"
    title: str = ""
    synopsis: str = ""
    goals: Goals = Field(default_factory=Goals)
    hooks: Hooks = Field(default_factory=Hooks)
    participants: list[Participant] = Field(default_factory=list)
    locations: list[str] = Field(default_factory=list)
    world_state_delta: list[Delta] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _lift_time_order(cls, data: object) -> object:
        # Stored records keep the timeline position under time.order.
        if not isinstance(data, dict) or "order" in data:
            return data
        time_block = data.get("time")
        if isinstance(time_block, dict) and time_block.get("order") is not None:
            payload = dict(data)
            payload["order"] = time_block["order"]
            return payload
        return data


class DeltaIssue(_Record):
    code: Literal["TYPE_MISMATCH", "DANGLING_REMOVE"]
    severity: Severity
    node_id: str
    key: str
    op: DeltaOp
    delta_index: int
    message: str
    found_type: str | None = None
    expected_type: str | None = None


class ContinuityIssue(_Record):
    severity: Severity
    code: str
    message: str
    node_id: str
    entity_ids: list[str] = Field(default_factory=list)
    suggestion: str | None = None

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
