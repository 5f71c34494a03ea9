"""Account context decoded from the add-on install URL."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from pydantic import AliasChoices, BaseModel, Field, ValidationError, field_validator

from .stores import STORES_BY_CODE, STORES_BY_NAME, CatalogRef, StoreDefinition
from .utils import decode_base64_json

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class RequestContext:
    """Store account resolved for a single catalog request."""

    store: StoreDefinition
    store_token: str
    client_ip: str | None = None


class UserData(BaseModel):
    """Store selection and credentials carried in the first path segment."""

    store_name: str = Field(validation_alias=AliasChoices("store", "storeName"))
    store_token: str = Field(validation_alias=AliasChoices("token", "storeToken"))

    @field_validator("store_name", "store_token", mode="before")
    @classmethod
    def _strip_blank(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip()
        return value

    @field_validator("store_name")
    @classmethod
    def _known_store(cls, value: str) -> str:
        lowered = value.lower()
        if lowered in STORES_BY_NAME:
            return lowered
        if lowered in STORES_BY_CODE:
            return STORES_BY_CODE[lowered].name
        raise ValueError("Unknown store")

    @field_validator("store_token")
    @classmethod
    def _require_token(cls, value: str) -> str:
        if not value:
            raise ValueError("Store token is required")
        return value

    @classmethod
    def decode(cls, encoded: str) -> "UserData":
        """Decode the URL-safe base64 JSON payload.

        Any failure is reported as a bare ``ValueError`` so details of the
        payload never reach the client.
        """

        try:
            return cls.model_validate(decode_base64_json(encoded))
        except (ValueError, ValidationError) as exc:
            logger.info("Rejected user data: %s", exc)
            raise ValueError("Invalid user data") from None

    @property
    def store(self) -> StoreDefinition:
        return STORES_BY_NAME[self.store_name]

    def request_context(
        self, ref: CatalogRef, *, client_ip: str | None = None
    ) -> RequestContext:
        """Return the context for ``ref`` if it belongs to this account's store."""

        if ref.store.code != self.store.code:
            raise ValueError(f"unsupported catalog id: {ref.catalog_id}")
        return RequestContext(
            store=self.store, store_token=self.store_token, client_ip=client_ip
        )
