"""IGDB game database client.

Authenticates with Twitch client credentials and queries the IGDB v4 API.
Implements the enrichment source used by the metadata refresh service.
"""

import time
from collections.abc import Callable
from typing import Any

import structlog

from ..models import Candidate, CompanyCredit, CoverRef
from .errors import ConfigurationError
from .http_client import HttpClientService
from .metadata_refresh import pick_best_match

log = structlog.stdlib.get_logger()

TOKEN_URL = "https://id.twitch.tv/oauth2/token"
API_URL = "https://api.igdb.com/v4"
IMAGE_URL = "https://images.igdb.com/igdb/image/upload/t_{size}/{image_id}.jpg"

# Renew the access token this many seconds before it expires
TOKEN_REFRESH_MARGIN = 300

GAME_FIELDS = (
    "id,name,summary,storyline,first_release_date,cover.image_id,"
    "involved_companies.company.name,involved_companies.developer,"
    "involved_companies.publisher,genres.name,platforms.name,platforms.slug,"
    "slug,url,total_rating,total_rating_count"
)


def _escape(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


def parse_game(data: dict[str, Any]) -> Candidate:
    """Convert an IGDB game object into a ``Candidate``."""
    cover = data.get("cover")
    companies = [
        CompanyCredit(
            name=entry["company"]["name"],
            developer=bool(entry.get("developer")),
            publisher=bool(entry.get("publisher")),
        )
        for entry in data.get("involved_companies") or []
        if isinstance(entry.get("company"), dict) and "name" in entry["company"]
    ]
    return Candidate(
        id=int(data["id"]),
        name=str(data["name"]),
        summary=data.get("summary"),
        storyline=data.get("storyline"),
        first_release_date=data.get("first_release_date"),
        cover=CoverRef(image_id=cover["image_id"]) if isinstance(cover, dict) and "image_id" in cover else None,
        companies=companies,
        genres=[g["name"] for g in data.get("genres") or [] if "name" in g],
        platforms=[p["name"] for p in data.get("platforms") or [] if "name" in p],
        slug=data.get("slug"),
        url=data.get("url"),
        rating=data.get("total_rating"),
        rating_count=data.get("total_rating_count"),
    )


class IgdbClient:
    """Client for the IGDB API."""

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        http_client: HttpClientService,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if not client_id or not client_secret:
            raise ConfigurationError(
                "IGDB credentials are not configured",
                setting="igdb_client_id",
                expected="Twitch application client id and secret",
            )
        self.client_id = client_id
        self._client_secret = client_secret
        self._http = http_client
        self._clock = clock
        self._access_token: str | None = None
        self._token_expires_at: float = 0.0

    async def _ensure_token(self) -> str:
        """Return a valid access token, requesting a new one when needed."""
        if self._access_token and self._clock() < self._token_expires_at - TOKEN_REFRESH_MARGIN:
            return self._access_token

        log.info("Requesting IGDB access token")
        response = await self._http.post(
            TOKEN_URL,
            params={
                "client_id": self.client_id,
                "client_secret": self._client_secret,
                "grant_type": "client_credentials",
            },
        )
        payload = response.json()
        self._access_token = str(payload["access_token"])
        self._token_expires_at = self._clock() + float(payload.get("expires_in", 0))
        log.debug("IGDB access token acquired", expires_in=payload.get("expires_in"))
        return self._access_token

    async def _query(self, endpoint: str, body: str) -> list[dict[str, Any]]:
        token = await self._ensure_token()
        response = await self._http.post(
            f"{API_URL}/{endpoint}",
            headers={
                "Client-ID": self.client_id,
                "Authorization": f"Bearer {token}",
                "Accept": "application/json",
            },
            content=body,
        )
        data = response.json()
        if not isinstance(data, list):
            raise ValueError(f"Unexpected IGDB response for {endpoint}: {type(data).__name__}")
        return data

    async def search(self, name: str) -> list[Candidate]:
        """Search games by name, returning at most ten candidates."""
        body = f'search "{_escape(name)}"; fields {GAME_FIELDS}; limit 10;'
        results = await self._query("games", body)
        candidates = [parse_game(item) for item in results]
        log.debug("IGDB search completed", query=name, results=len(candidates))
        return candidates

    async def best_match(self, name: str) -> Candidate | None:
        """Return the exact (case-insensitive) name match, else the first result."""
        return pick_best_match(name, await self.search(name))

    async def get_game(self, game_id: int) -> Candidate | None:
        body = f"fields {GAME_FIELDS}; where id = {int(game_id)};"
        results = await self._query("games", body)
        return parse_game(results[0]) if results else None

    @staticmethod
    def cover_url(image_id: str, size_hint: str = "cover_big") -> str:
        return IMAGE_URL.format(size=size_hint, image_id=image_id)

    async def fetch_cover_bytes(self, image_id: str, size_hint: str = "cover_big") -> bytes:
        """Download cover image bytes for an IGDB image id."""
        response = await self._http.get(self.cover_url(image_id, size_hint))
        return response.content
