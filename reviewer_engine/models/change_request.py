"""Change request (pull request) models."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import PurePosixPath


class SizeClass(str, Enum):
    """Size class of a change request."""

    XS = "xs"
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"
    XL = "xl"


class Priority(str, Enum):
    """Review priority of a change request."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ChangeKind(str, Enum):
    """Kind of change applied to a file."""

    ADDED = "added"
    MODIFIED = "modified"
    REMOVED = "removed"
    RENAMED = "renamed"


@dataclass(frozen=True)
class FileDelta:
    """A single changed file in a change request."""

    path: str
    change_kind: ChangeKind = ChangeKind.MODIFIED
    lines_added: int = 0
    lines_removed: int = 0
    language: str | None = None  # Inferred upstream, optional
    complexity: int = 1  # 1-10

    def __post_init__(self) -> None:
        # Frozen dataclass, so clamp through object.__setattr__
        object.__setattr__(self, "complexity", max(1, min(10, int(self.complexity))))
        object.__setattr__(self, "change_kind", ChangeKind(self.change_kind))

    @property
    def extension(self) -> str:
        """Lower-cased extension without the dot, or an empty string."""
        return PurePosixPath(self.path).suffix.lstrip(".").lower()

    @property
    def lines_changed(self) -> int:
        return self.lines_added + self.lines_removed


@dataclass(frozen=True)
class ChangeRequest:
    """
    A pull request awaiting review.

    Immutable input for a single assignment cycle.
    """

    id: str
    author: str
    repository: str = ""
    files: tuple[FileDelta, ...] = ()
    size: SizeClass = SizeClass.MEDIUM
    priority: Priority = Priority.MEDIUM
    labels: tuple[str, ...] = ()
    required_reviewers: tuple[str, ...] = ()
    excluded_reviewers: tuple[str, ...] = ()
    is_draft: bool = False

    def __post_init__(self) -> None:
        for name in ("files", "labels", "required_reviewers", "excluded_reviewers"):
            object.__setattr__(self, name, tuple(getattr(self, name)))
        object.__setattr__(self, "size", SizeClass(self.size))
        object.__setattr__(self, "priority", Priority(self.priority))

    @property
    def file_paths(self) -> list[str]:
        return [f.path for f in self.files]

    @property
    def total_complexity(self) -> int:
        return sum(f.complexity for f in self.files)

    def is_excluded(self, person_id: str) -> bool:
        return person_id in self.excluded_reviewers

    def is_required(self, person_id: str) -> bool:
        return person_id in self.required_reviewers
