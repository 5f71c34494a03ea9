"""Pydantic models describing store listings and catalog payloads."""

from __future__ import annotations

from typing import Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

ContentType = Literal["other"]
PosterShape = Literal["poster", "landscape", "square"]

CONTENT_TYPE_OTHER: ContentType = "other"
STATUS_DOWNLOADED = "downloaded"


class CatalogItem(BaseModel):
    """A single catalog entry derived from a store listing.

    Instances are frozen so the copies held by the catalog cache can be shared
    between requests; per-request changes go through ``model_copy``.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    type: ContentType = CONTENT_TYPE_OTHER
    name: str
    description: str = ""
    poster_shape: PosterShape = "poster"
    poster: str | None = None
    content_hash: str = Field(default="", exclude=True)

    def to_meta_preview(self) -> dict[str, object]:
        """Return a Stremio-compatible meta preview for catalog listings."""

        meta: dict[str, object] = {
            "id": self.id,
            "type": self.type,
            "name": self.name,
            "description": self.description,
            "posterShape": self.poster_shape,
        }
        if self.poster:
            meta["poster"] = self.poster
        return meta


class MagnetItem(BaseModel):
    """An item returned by a store's magnet listing."""

    model_config = ConfigDict(coerce_numbers_to_str=True)

    id: str
    hash: str = ""
    name: str = ""
    size: int = 0
    status: str = ""


class NewzFile(BaseModel):
    name: str = ""
    size: int = 0


class NewzItem(BaseModel):
    """An item returned by a store's usenet listing."""

    model_config = ConfigDict(coerce_numbers_to_str=True)

    id: str
    hash: str = ""
    name: str = ""
    size: int = 0
    status: str = ""
    files: list[NewzFile] = Field(default_factory=list)

    def largest_file_name(self) -> str:
        """Return the name of the biggest file, or the submitted name."""

        largest: NewzFile | None = None
        for file in self.files:
            if largest is None or file.size > largest.size:
                largest = file
        if largest is not None and largest.name:
            return largest.name
        return self.name


class MagnetListPage(BaseModel):
    items: list[MagnetItem] = Field(default_factory=list)
    total_items: int = Field(
        default=0, validation_alias=AliasChoices("total_items", "totalItems")
    )


class NewzListPage(BaseModel):
    items: list[NewzItem] = Field(default_factory=list)
    total_items: int = Field(
        default=0, validation_alias=AliasChoices("total_items", "totalItems")
    )


def magnet_description(content_hash: str, name: str) -> str:
    return f"{name}\n\nHash: {content_hash}"


def usenet_description(name: str, file_name: str) -> str:
    if not name or name == file_name:
        return file_name
    return f"{name}\n\nFile: {file_name}"
