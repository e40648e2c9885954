"""Cached game metadata models."""

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any


@dataclass(frozen=True)
class CoverRef:
    """Reference to a cover image held by the game database."""
    image_id: str


@dataclass(frozen=True)
class CompanyCredit:
    """A company involved in a game and its role."""
    name: str
    developer: bool = False
    publisher: bool = False


@dataclass(frozen=True)
class Candidate:
    """A game database record matched to a library game."""
    id: int
    name: str
    summary: str | None = None
    storyline: str | None = None
    first_release_date: int | None = None  # Unix timestamp
    cover: CoverRef | None = None
    companies: list[CompanyCredit] = field(default_factory=list)
    genres: list[str] = field(default_factory=list)
    platforms: list[str] = field(default_factory=list)
    slug: str | None = None
    url: str | None = None
    rating: float | None = None
    rating_count: int | None = None

    def developers(self) -> list[str]:
        return [c.name for c in self.companies if c.developer]

    def publishers(self) -> list[str]:
        return [c.name for c in self.companies if c.publisher]

    def release_year(self) -> int | None:
        if self.first_release_date is None:
            return None
        return datetime.fromtimestamp(self.first_release_date, tz=timezone.utc).year

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Candidate":
        """Build a candidate from its JSON form.

        Raises:
            KeyError: If ``id`` or ``name`` is missing
            TypeError: If nested values have the wrong shape
        """
        if not isinstance(data, dict):
            raise TypeError(f"Expected a JSON object for a candidate, got {type(data).__name__}")
        cover_raw = data.get("cover")
        return cls(
            id=int(data["id"]),
            name=str(data["name"]),
            summary=data.get("summary"),
            storyline=data.get("storyline"),
            first_release_date=data.get("first_release_date"),
            cover=CoverRef(image_id=str(cover_raw["image_id"])) if cover_raw else None,
            companies=[CompanyCredit(**c) for c in data.get("companies") or []],
            genres=list(data.get("genres") or []),
            platforms=list(data.get("platforms") or []),
            slug=data.get("slug"),
            url=data.get("url"),
            rating=data.get("rating"),
            rating_count=data.get("rating_count"),
        )


@dataclass(frozen=True)
class CachedMetadata:
    """Persisted enrichment overlay for one game id."""
    game_id: str
    last_updated: int  # Unix timestamp, seconds
    external_id: int | None = None
    external_data: Candidate | None = None
    cover_path: str | None = None  # Relative to the cache root

    @property
    def has_external_data(self) -> bool:
        return self.external_data is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "game_id": self.game_id,
            "external_id": self.external_id,
            "external_data": self.external_data.to_dict() if self.external_data else None,
            "cover_path": self.cover_path,
            "last_updated": self.last_updated,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CachedMetadata":
        if not isinstance(data, dict):
            raise TypeError(f"Expected a JSON object for cached metadata, got {type(data).__name__}")
        external_raw = data.get("external_data")
        external_id = data.get("external_id")
        return cls(
            game_id=str(data["game_id"]),
            last_updated=int(data["last_updated"]),
            external_id=int(external_id) if external_id is not None else None,
            external_data=Candidate.from_dict(external_raw) if external_raw else None,
            cover_path=data.get("cover_path"),
        )
