"""
Capability catalog entries.

The catalog seeds the set of tools a caller can toggle. It carries display
metadata only; execution goes through the tool registry.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class Capability:
    """A selectable tool as presented to the caller."""
    id: str
    name: str
    description: str
    icon: str = ""
    default_enabled: bool = True

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "icon": self.icon,
            "defaultEnabled": self.default_enabled,
        }
