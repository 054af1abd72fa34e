"""Recipe steps exchanged by the deferral sample."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

RECIPE_STEP_SUBJECT = "RecipeStep"
JSON_CONTENT_TYPE = "application/json"


@dataclass(frozen=True)
class RecipeStep:
    """One step of a recipe; steps must be processed in ascending order."""

    step: int
    title: str

    @classmethod
    def from_payload(cls, payload: Any) -> "RecipeStep":
        if not isinstance(payload, dict):
            raise ValueError(f"RecipeStep payload must be an object, got {type(payload).__name__}")
        step = payload.get("step")
        if isinstance(step, bool) or not isinstance(step, int):
            raise ValueError("RecipeStep payload missing integer 'step'")
        title = payload.get("title")
        return cls(step=step, title="" if title is None else str(title))

    def to_payload(self) -> Dict[str, Any]:
        return {"step": self.step, "title": self.title}


RECIPE: List[RecipeStep] = [
    RecipeStep(1, "Shop"),
    RecipeStep(2, "Unpack"),
    RecipeStep(3, "Prepare"),
    RecipeStep(4, "Cook"),
    RecipeStep(5, "Eat"),
]


def _matches(value: Optional[str], expected: str) -> bool:
    return value is not None and value.casefold() == expected.casefold()


def is_recipe_step(subject: Optional[str], content_type: Optional[str]) -> bool:
    """Return True when the message metadata identifies a JSON recipe step."""
    return _matches(subject, RECIPE_STEP_SUBJECT) and _matches(content_type, JSON_CONTENT_TYPE)
