"""Project model."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass
class Project:
    """
    Represents a project: a label that notes may point at.

    Notes hold a weak ``project_id`` reference.  Deleting a project does not
    touch its notes; a dangling reference is allowed.
    """

    #: The project ID.
    id: str
    #: The project name.
    name: str

    def to_json(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name}

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> Project:
        return cls(id=data["id"], name=data["name"])
