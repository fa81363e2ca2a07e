"""Domain enumerations for the search service.

Enums represent fixed sets of domain values (document kinds, sort order,
index health, write outcomes).
"""

from enum import Enum


class _ValuesMixin:
    """Mixin that adds a values() classmethod to str Enums."""

    @classmethod
    def values(cls) -> list[str]:
        """Return all valid values as strings."""
        return [member.value for member in cls]


class DocumentKind(_ValuesMixin, str, Enum):
    """Kind of indexable record. Stored in the `type` field of every document."""

    WORK_ITEM = "work_item"
    USER = "user"
    TEMPLATE = "template"

    @property
    def collection(self) -> str:
        """Logical collection (index without prefix) holding this kind."""
        return _COLLECTIONS[self]


_COLLECTIONS: dict[DocumentKind, str] = {
    DocumentKind.WORK_ITEM: "work_items",
    DocumentKind.USER: "users",
    DocumentKind.TEMPLATE: "templates",
}

ALL_COLLECTIONS: tuple[str, ...] = tuple(_COLLECTIONS.values())


def kind_for_collection(collection: str) -> DocumentKind | None:
    """Return the kind stored in collection, or None for an unknown name."""
    for kind, name in _COLLECTIONS.items():
        if name == collection:
            return kind
    return None


class WorkItemType(_ValuesMixin, str, Enum):
    """Work item hierarchy levels."""

    OBJECTIVE = "objective"
    STRATEGY = "strategy"
    INITIATIVE = "initiative"
    TASK = "task"
    SUBTASK = "subtask"


class SortOrder(_ValuesMixin, str, Enum):
    """Sort direction for a sort field."""

    ASC = "asc"
    DESC = "desc"


class IndexHealth(_ValuesMixin, str, Enum):
    """Collection health as reported by the search engine."""

    GREEN = "green"
    YELLOW = "yellow"
    RED = "red"


class WriteResult(_ValuesMixin, str, Enum):
    """Outcome of a single index mutation.

    NOOP means the engine kept the stored document: the write was stale
    (older event time) or targeted a document owned by another tenant.
    """

    CREATED = "created"
    UPDATED = "updated"
    NOOP = "noop"
    DELETED = "deleted"
    NOT_FOUND = "not_found"
