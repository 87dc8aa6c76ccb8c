"""Exceptions raised by the state tree and session layers."""

from __future__ import annotations


class InvalidMoveError(ValueError):
    """A requested move or tree operation violates its preconditions.

    The operation that raised it has not modified any state, so callers may
    simply discard the attempt (for example while hovering an illegal cell).
    """


class NodeNotFoundError(InvalidMoveError):
    """A node id does not exist in the state tree."""

    def __init__(self, node_id: object) -> None:
        super().__init__(f"Node not found: {node_id}")
        self.node_id = node_id


__all__ = ["InvalidMoveError", "NodeNotFoundError"]
