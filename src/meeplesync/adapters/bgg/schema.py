"""BoardGameGeek XML API v2 ``thing`` payload schemas.

The XML is first flattened into plain dicts (one per ``<item>``) and then
validated per item, so that one malformed item never poisons its batch.
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from typing import Annotated, Any, ClassVar, Literal, Self

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, model_validator

log = logging.getLogger(__name__)


class BggXmlError(ValueError):
    """Raised when a response body is not a usable ``<items>`` document."""


class BggBaseModel(BaseModel):
    model_config = ConfigDict(extra="allow")
    _logged_extra_keys: ClassVar[set[str]] = set()

    def model_post_init(self, _context: object, /) -> None:
        extras = self.__pydantic_extra__
        if not extras:
            return
        new_keys = set(extras).difference(self._logged_extra_keys)
        if not new_keys:
            return
        self._logged_extra_keys.update(new_keys)
        log.warning(
            "BGG %s: unmodeled keys: %s",
            type(self).__name__,
            ", ".join(sorted(new_keys)),
        )


class BggName(BggBaseModel):
    type: str = "primary"
    value: str = Field(min_length=1)
    sortindex: int | None = None


class BggLink(BggBaseModel):
    type: str
    id: int = Field(gt=0)
    value: str = ""
    inbound: bool = False


class _BggItemBase(BggBaseModel):
    id: int = Field(gt=0)
    names: list[BggName] = Field(default_factory=list[BggName])
    yearpublished: int | None = None
    links: list[BggLink] = Field(default_factory=list[BggLink])
    usersrated: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def _require_primary_name(self) -> Self:
        if self.primary_name is None:
            raise ValueError(f"item {self.id} has no primary name")
        return self

    @property
    def primary_name(self) -> str | None:
        for name in self.names:
            if name.type == "primary":
                return name.value
        return None

    def links_of(self, link_type: str) -> list[BggLink]:
        return [link for link in self.links if link.type == link_type]


class BggBoardGame(_BggItemBase):
    type: Literal["boardgame"]


class BggExpansion(_BggItemBase):
    type: Literal["boardgameexpansion"]


BggItem = Annotated[BggBoardGame | BggExpansion, Field(discriminator="type")]

BGG_ITEM_ADAPTER: TypeAdapter[BggBoardGame | BggExpansion] = TypeAdapter(BggItem)


def items_from_xml(payload: bytes | str) -> list[dict[str, Any]]:
    """Flatten a ``thing`` response into one dict per ``<item>``."""

    try:
        root = ET.fromstring(payload)  # noqa: S314
    except ET.ParseError as exc:
        raise BggXmlError(f"Unparseable BGG response: {exc}") from exc
    if root.tag != "items":
        raise BggXmlError(f"Unexpected BGG root element <{root.tag}>")
    return [_item_dict(element) for element in root.iterfind("item")]


def _item_dict(element: ET.Element) -> dict[str, Any]:
    item: dict[str, Any] = {
        "type": element.get("type"),
        "id": element.get("id"),
        "names": [dict(name.attrib) for name in element.iterfind("name")],
        "links": [dict(link.attrib) for link in element.iterfind("link")],
    }
    year = element.find("yearpublished")
    if year is not None:
        item["yearpublished"] = year.get("value")
    users_rated = element.find("statistics/ratings/usersrated")
    if users_rated is not None:
        item["usersrated"] = users_rated.get("value")
    return item
