"""Known store backends and the catalog identifiers derived from them."""

from __future__ import annotations

from dataclasses import dataclass

ID_NAMESPACE = "storeshelf"
USENET_SUFFIX = "usenet"
STORE_ACTIONS_GENRE = "StoreShelf"
STORE_ACTIONS_NAME = "StoreShelf Store Actions"


@dataclass(frozen=True)
class StoreDefinition:
    """Describes a store backend an account can be linked to."""

    name: str
    code: str
    display_name: str
    supports_usenet: bool = False


STORES: tuple[StoreDefinition, ...] = (
    StoreDefinition(name="alldebrid", code="ad", display_name="AllDebrid"),
    StoreDefinition(name="debridlink", code="dl", display_name="Debrid-Link"),
    StoreDefinition(name="easydebrid", code="ed", display_name="EasyDebrid"),
    StoreDefinition(name="offcloud", code="oc", display_name="Offcloud"),
    StoreDefinition(name="pikpak", code="pp", display_name="PikPak"),
    StoreDefinition(name="premiumize", code="pm", display_name="Premiumize"),
    StoreDefinition(name="realdebrid", code="rd", display_name="RealDebrid"),
    StoreDefinition(
        name="torbox", code="tb", display_name="TorBox", supports_usenet=True
    ),
)

STORES_BY_NAME = {store.name: store for store in STORES}
STORES_BY_CODE = {store.code: store for store in STORES}


@dataclass(frozen=True)
class CatalogRef:
    """A parsed catalog identifier."""

    store: StoreDefinition
    is_usenet: bool = False

    @property
    def catalog_id(self) -> str:
        return catalog_id_for(self.store, is_usenet=self.is_usenet)


def catalog_id_for(store: StoreDefinition, *, is_usenet: bool = False) -> str:
    catalog_id = f"{ID_NAMESPACE}.{store.code}"
    if is_usenet:
        catalog_id = f"{catalog_id}.{USENET_SUFFIX}"
    return catalog_id


def id_prefix_for(store: StoreDefinition, *, is_usenet: bool = False) -> str:
    prefix = f"{ID_NAMESPACE}:{store.code}:"
    if is_usenet:
        prefix = f"{prefix}{USENET_SUFFIX}:"
    return prefix


def action_id_for(store: StoreDefinition) -> str:
    return f"{ID_NAMESPACE}:{store.code}:action"


def parse_catalog_id(catalog_id: str) -> CatalogRef:
    """Decode ``storeshelf.<code>[.usenet]`` into a :class:`CatalogRef`."""

    parts = (catalog_id or "").split(".")
    if len(parts) not in {2, 3} or parts[0] != ID_NAMESPACE:
        raise ValueError(f"unsupported catalog id: {catalog_id}")
    store = STORES_BY_CODE.get(parts[1])
    if store is None:
        raise ValueError(f"unsupported catalog id: {catalog_id}")
    is_usenet = len(parts) == 3
    if is_usenet and (parts[2] != USENET_SUFFIX or not store.supports_usenet):
        raise ValueError(f"unsupported catalog id: {catalog_id}")
    return CatalogRef(store=store, is_usenet=is_usenet)
