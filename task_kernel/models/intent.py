"""Intent — the classified domain.action pair behind a task."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class Intent(BaseModel):
    """
    What the user wants, as ``domain.action``.

    Examples: ``messaging.send_text``, ``transport.book_ride``.
    Immutable once attached to a Task; re-parsing creates a new Task.
    """

    model_config = ConfigDict(frozen=True)

    domain: str
    action: str
    confidence: float = Field(ge=0.0, le=1.0, default=1.0)

    @property
    def full_name(self) -> str:
        return f"{self.domain}.{self.action}"

    @classmethod
    def parse(cls, full_name: str) -> Optional["Intent"]:
        """Split ``domain.action``; everything after the first dot is the action."""
        domain, sep, action = full_name.partition(".")
        if not sep or not domain or not action:
            return None
        return cls(domain=domain, action=action)
