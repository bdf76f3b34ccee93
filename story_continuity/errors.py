from __future__ import annotations


class ContinuityError(Exception):
    code = "CONTINUITY_ERROR"


class NodeNotFoundError(ContinuityError):
    code = "NOT_FOUND"

    def __init__(self, node_id: str) -> None:
        super().__init__(f"Story node not found: {node_id}")
        self.node_id = node_id
