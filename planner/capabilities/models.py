"""Data models for provider capability records."""
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union


def canonical_location(value: str) -> str:
    """Lowercase and strip non-alphanumerics so "Sweden Central" == "swedencentral"."""
    return re.sub(r'[^a-z0-9]', '', (value or "").lower())


@dataclass(frozen=True)
class Restriction:
    """A provider-reported constraint on a capability."""
    reason_code: str
    type: str = ""
    affected_locations: Tuple[str, ...] = ()
    affected_zones: Tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Restriction":
        info = data.get("restrictionInfo") or {}
        return cls(
            reason_code=data.get("reasonCode") or "",
            type=data.get("type") or "",
            affected_locations=tuple(info.get("locations") or data.get("values") or ()),
            affected_zones=tuple(info.get("zones") or ()),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "reasonCode": self.reason_code,
            "type": self.type,
            "affectedLocations": list(self.affected_locations),
            "affectedZones": list(self.affected_zones),
        }


@dataclass(frozen=True)
class CapabilityRecord:
    """One SKU, size or tier offered by a provider."""
    name: str
    resource_type: str = ""
    locations: Tuple[str, ...] = ()
    restrictions: Tuple[Restriction, ...] = ()
    kind: str = ""
    raw: Mapping[str, Any] = field(default_factory=dict, compare=False, hash=False, repr=False)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CapabilityRecord":
        locations = list(data.get("locations") or [])
        for info in data.get("locationInfo") or []:
            if isinstance(info, dict) and info.get("location") and info["location"] not in locations:
                locations.append(info["location"])
        restrictions = tuple(
            Restriction.from_dict(r) for r in data.get("restrictions") or [] if isinstance(r, dict)
        )
        return cls(
            name=data.get("name") or "",
            resource_type=data.get("resourceType") or "",
            locations=tuple(locations),
            restrictions=restrictions,
            kind=data.get("kind") or "",
            raw=dict(data),
        )

    @property
    def key(self) -> str:
        """Composite key so resource types sharing a provider don't collide."""
        return f"{self.resource_type or 'unknown'}:{self.name}"

    @property
    def is_restricted(self) -> bool:
        # Any restriction counts, whatever scope it names
        return bool(self.restrictions)

    def available_in(self, region: str) -> bool:
        target = canonical_location(region)
        return any(canonical_location(loc) == target for loc in self.locations)

    def matches(self, sku: str) -> bool:
        wanted = sku.lower()
        return wanted == self.name.lower() or (bool(self.kind) and wanted == self.kind.lower())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "resourceType": self.resource_type,
            "locations": list(self.locations),
            "restrictions": [r.to_dict() for r in self.restrictions],
        }


@dataclass(frozen=True)
class WrappedResponse:
    """A list payload inside an envelope such as {"value": [...]}."""
    field_name: str
    items: Tuple[Any, ...]


@dataclass(frozen=True)
class BareResponse:
    """A payload that is the list itself."""
    items: Tuple[Any, ...]


CapabilityResponse = Union[WrappedResponse, BareResponse]


def decode_response(payload: Any) -> CapabilityResponse:
    """Decode a provider response into its list of items.

    Args:
        payload: Decoded JSON from a capability listing endpoint.

    Returns:
        CapabilityResponse: WrappedResponse for envelopes exposing "value" or a
        single array field, BareResponse for plain arrays.

    Raises:
        ValueError: If the payload holds no recognizable array.
    """
    if isinstance(payload, list):
        return BareResponse(tuple(payload))
    if isinstance(payload, dict):
        if isinstance(payload.get("value"), list):
            return WrappedResponse("value", tuple(payload["value"]))
        arrays = [(k, v) for k, v in payload.items() if isinstance(v, list)]
        if len(arrays) == 1:
            return WrappedResponse(arrays[0][0], tuple(arrays[0][1]))
    raise ValueError(f"Unrecognized capability response of type {type(payload).__name__}")


def filter_by_region(items: List[Any], region: str) -> List[Dict[str, Any]]:
    """Keep the dict items whose locations or locationInfo include region."""
    target = canonical_location(region)
    kept = []
    for item in items:
        if not isinstance(item, dict):
            continue
        locations = list(item.get("locations") or [])
        locations.extend(
            info.get("location") for info in item.get("locationInfo") or [] if isinstance(info, dict)
        )
        if any(canonical_location(loc) == target for loc in locations if isinstance(loc, str)):
            kept.append(item)
    return kept


@dataclass
class ExtractionResult:
    """Output of a provider-specific extractor."""
    items: List[Dict[str, Any]]
    note: Optional[str] = None
