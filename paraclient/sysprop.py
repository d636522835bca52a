# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Generic Para object with an open property bag.

Known schema fields map to attributes; any other JSON key is kept in
``properties`` and written back at the top level on serialization.
"""

from dataclasses import dataclass, field, fields
from typing import Any

from paraclient.signer import _uri_encode


def singular_to_plural(word: str | None) -> str | None:
    """Quick and dirty singular to plural conversion."""
    if not word or not word.strip():
        return word
    if word.endswith("s"):
        return word + "es"
    if word.endswith("y"):
        return word[:-1] + "ies"
    return word + "s"


@dataclass
class Sysprop:
    """A Para object of any type."""

    id: str | None = None
    timestamp: int | None = None
    type: str | None = "sysprop"
    appid: str | None = None
    parentid: str | None = None
    creatorid: str | None = None
    updated: int | None = None
    name: str | None = None
    tags: list[str] | None = None
    votes: int | None = None
    version: int | None = None
    stored: bool | None = None
    indexed: bool | None = None
    cached: bool | None = None
    plural: str | None = None
    properties: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def schema_fields(cls) -> frozenset[str]:
        return frozenset(f.name for f in fields(cls) if f.name != "properties")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Sysprop":
        """Build an object from decoded JSON; unknown keys go to the bag."""
        known = cls.schema_fields()
        obj = cls(**{k: v for k, v in data.items() if k in known})
        for key, value in data.items():
            if key not in known and key != "properties":
                obj.add_property(key, value)
        nested = data.get("properties")
        if isinstance(nested, dict):
            for key, value in nested.items():
                obj.add_property(key, value)
        return obj

    def to_dict(self) -> dict[str, Any]:
        """JSON form: properties first, then non-None schema fields."""
        out: dict[str, Any] = dict(self.properties)
        for f in fields(self):
            if f.name == "properties":
                continue
            value = getattr(self, f.name)
            if value is not None:
                out[f.name] = value
        return out

    def add_property(self, name: str | None, value: Any) -> "Sysprop":
        """Add a property; blank names and None values are ignored."""
        if name and name.strip() and value is not None:
            self.properties[name] = value
        return self

    def get_property(self, name: str) -> Any:
        return self.properties.get(name)

    def remove_property(self, name: str) -> "Sysprop":
        self.properties.pop(name, None)
        return self

    def get_plural(self) -> str | None:
        if self.plural:
            return self.plural
        return singular_to_plural(self.type)

    @property
    def object_uri(self) -> str:
        """Resource path of this object, e.g. ``/user/123``."""
        uri = "/" + _uri_encode(self.type or "")
        if self.id is not None:
            uri += "/" + _uri_encode(self.id)
        return uri
