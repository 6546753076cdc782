from __future__ import annotations
from dataclasses import dataclass
from enum import Enum


class IdeaType(str, Enum):
    COMPLAINT = "complaint"
    PROPOSAL = "proposal"
    VOTE = "vote"


class Category(str, Enum):
    INFRASTRUCTURE = "infrastructure"
    HEALTH = "health"
    SECURITY = "security"
    EDUCATION = "education"
    ENVIRONMENT = "environment"
    TRANSPORTATION = "transportation"
    CULTURE = "culture"
    ECONOMY = "economy"
    OTHER = "other"

    @property
    def info(self) -> "CategoryInfo":
        return CATEGORY_INFO[self]

    @property
    def label(self) -> str:
        return CATEGORY_INFO[self].label

    @classmethod
    def parse(cls, value: str) -> "Category":
        """Accept the canonical value or the legacy slug stored by older rows."""
        key = (value or "").strip().lower()
        try:
            return cls(key)
        except ValueError:
            pass
        found = _BY_LEGACY_SLUG.get(key)
        if found is None:
            raise ValueError(f"unknown category: {value!r}")
        return found


@dataclass(frozen=True)
class CategoryInfo:
    label: str
    legacy_slug: str
    color: str


CATEGORY_INFO: dict[Category, CategoryInfo] = {
    Category.INFRASTRUCTURE: CategoryInfo("Infrastructure", "infraestructura", "purple"),
    Category.HEALTH: CategoryInfo("Health", "salud", "red"),
    Category.SECURITY: CategoryInfo("Security", "seguridad", "yellow"),
    Category.EDUCATION: CategoryInfo("Education", "educacion", "blue"),
    Category.ENVIRONMENT: CategoryInfo("Environment", "ambiente", "green"),
    Category.TRANSPORTATION: CategoryInfo("Transportation", "transporte", "indigo"),
    Category.CULTURE: CategoryInfo("Culture", "cultura", "pink"),
    Category.ECONOMY: CategoryInfo("Economy", "economia", "cyan"),
    Category.OTHER: CategoryInfo("Other", "otro", "gray"),
}

_BY_LEGACY_SLUG = {info.legacy_slug: cat for cat, info in CATEGORY_INFO.items()}


class Role(str, Enum):
    CITIZEN = "citizen"
    REPRESENTATIVE = "representative"
    ADMINISTRATOR = "administrator"
    AUTHORITY = "authority"

    @classmethod
    def parse(cls, value: str | None) -> "Role":
        # Profiles created before roles existed carry "user" (or nothing).
        if not value or value == "user":
            return cls.CITIZEN
        try:
            return cls(value)
        except ValueError:
            return cls.CITIZEN

    @property
    def can_file_official_proposals(self) -> bool:
        return self is Role.REPRESENTATIVE

    @property
    def can_edit_any_idea(self) -> bool:
        return self is Role.ADMINISTRATOR
