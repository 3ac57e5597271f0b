from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from app.core import config

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ExternalApi:
    name: str
    description: str
    base_url: str


class ExternalApiCatalogue(Protocol):
    def list_apis(self) -> list[ExternalApi]: ...


class ExternalApiEntry(BaseModel):
    id: str | None = None
    name: str
    description: str = ""
    base_url: str = Field(default="", alias="baseUrl")
    enabled: bool = True

    # credentials and anything else stay in the file
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    def to_api(self) -> ExternalApi:
        return ExternalApi(name=self.name, description=self.description, base_url=self.base_url)


_ENTRIES = TypeAdapter(list[ExternalApiEntry])


class FileApiCatalogue:
    """External integrations listed in a JSON file.

    The file holds a list of objects with ``name``, ``description``,
    ``baseUrl`` and ``enabled``. Disabled entries are skipped and credential
    fields are never read into memory. A missing or unreadable file is an
    empty catalogue.
    """

    def __init__(self, path: str | Path | None = config.EXTERNAL_APIS_FILE or None) -> None:
        self._apis = _load(Path(path)) if path else []

    @classmethod
    def from_entries(cls, entries: list[dict[str, Any]]) -> FileApiCatalogue:
        catalogue = cls(path=None)
        catalogue._apis = _enabled(_ENTRIES.validate_python(entries))
        return catalogue

    def list_apis(self) -> list[ExternalApi]:
        return list(self._apis)


def _load(path: Path) -> list[ExternalApi]:
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        logger.info("external API catalogue %s not found; no integrations loaded", path)
        return []
    except OSError as exc:
        logger.warning("could not read external API catalogue %s: %s", path, exc)
        return []

    try:
        entries = _ENTRIES.validate_json(raw)
    except ValidationError as exc:
        logger.warning("invalid external API catalogue %s: %s", path, exc.errors()[:1])
        return []

    apis = _enabled(entries)
    logger.info("loaded %d external API configurations", len(apis))
    return apis


def _enabled(entries: list[ExternalApiEntry]) -> list[ExternalApi]:
    return [entry.to_api() for entry in entries if entry.enabled]
