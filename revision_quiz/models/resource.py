"""
Revision resources - the learning documents quizzes are grounded in.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional


@dataclass(frozen=True)
class Resource:
    """
    A learning document tagged with subject and difficulty.

    Attributes:
        resource_id: Resource identifier
        subject: Subject key (e.g. "maths")
        difficulty: Difficulty level, 1-5
        file_url: Location of the document content
        language: Language code of the document (e.g. "en", "fr")
        title: Optional display title
        level: Optional education level tag
        resource_type: Optional kind of document (course, exercise, ...)
        tags: Free-form tags
        year: Optional publication year
    """
    resource_id: str
    subject: str
    difficulty: int
    file_url: str
    language: str = "fr"
    title: Optional[str] = None
    level: Optional[str] = None
    resource_type: Optional[str] = None
    tags: tuple = field(default_factory=tuple)
    year: Optional[int] = None

    def __post_init__(self):
        if not self.resource_id:
            raise ValueError("Resource id cannot be empty")
        if not self.subject:
            raise ValueError(f"Resource {self.resource_id} subject cannot be empty")
        if not isinstance(self.difficulty, int) or not 1 <= self.difficulty <= 5:
            raise ValueError(
                f"Resource {self.resource_id} difficulty must be an integer in [1, 5], "
                f"got {self.difficulty!r}"
            )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for persistence."""
        return {
            "id": self.resource_id,
            "subject": self.subject,
            "difficulty": self.difficulty,
            "file_url": self.file_url,
            "language": self.language,
            "title": self.title,
            "level": self.level,
            "type": self.resource_type,
            "tags": list(self.tags),
            "year": self.year,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Resource":
        """Create from dictionary (accepts the stored camelCase ``fileUrl`` key too)."""
        return cls(
            resource_id=str(data.get("id", data.get("resource_id", ""))),
            subject=data.get("subject", ""),
            difficulty=int(data.get("difficulty", 0)),
            file_url=data.get("file_url", data.get("fileUrl", "")),
            language=data.get("language", "fr"),
            title=data.get("title"),
            level=data.get("level"),
            resource_type=data.get("type", data.get("resource_type")),
            tags=tuple(data.get("tags") or ()),
            year=data.get("year"),
        )


def matching_resources(
    resources: Iterable[Resource],
    subject: str,
    max_difficulty: int,
    limit: int,
) -> List[Resource]:
    """
    Filter resources for one subject up to a difficulty ceiling.

    Results are ordered by ascending difficulty, ties broken by id, and
    truncated to ``limit``.
    """
    matches = [
        r for r in resources
        if r.subject == subject and r.difficulty <= max_difficulty
    ]
    matches.sort(key=lambda r: (r.difficulty, r.resource_id))
    return matches[:limit]
