from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class UserSummary:
    id: str
    first_name: str = ""
    last_name: str = ""
    role: str | None = None
    email: str | None = None

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip() or self.id
