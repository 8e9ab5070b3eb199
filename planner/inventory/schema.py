"""Pydantic models for inventory snapshots."""
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..quota.models import QuotaMetric


class InventoryResource(BaseModel):
    """One discovered resource."""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: Optional[str] = None
    name: Optional[str] = None
    type: str
    location: Optional[str] = None
    sku: Optional[str] = None
    vm_size: Optional[str] = Field(default=None, alias='vmSize')
    disk_sku: Optional[str] = Field(default=None, alias='diskSku')
    disk_size_gb: Optional[float] = Field(default=None, alias='diskSizeGB')
    tier: Optional[str] = None
    capacity: Optional[Union[int, str]] = None
    storage_account_kind: Optional[str] = Field(default=None, alias='storageAccountKind')

    @field_validator("sku", mode="before")
    @classmethod
    def _flatten_sku(cls, value: Any) -> Any:
        # Raw ARM resources carry {"name": ..., "tier": ...}
        if isinstance(value, dict):
            return value.get("name")
        return value


class Inventory(BaseModel):
    """Root inventory schema."""
    data: List[InventoryResource] = Field(default_factory=list)

    @property
    def resource_types(self) -> List[str]:
        return sorted({resource.type.lower() for resource in self.data})


class ResourceTuple(BaseModel):
    """A distinct combination of resource type and size/SKU fields.

    Identity fields are frozen; quota fields are an overlay set by copying.
    """
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    type: str
    sku: Optional[str] = None
    vm_size: Optional[str] = Field(default=None, alias='vmSize')
    disk_sku: Optional[str] = Field(default=None, alias='diskSku')
    disk_size_gb: Optional[float] = Field(default=None, alias='diskSizeGB')
    tier: Optional[str] = None
    capacity: Optional[Union[int, str]] = None
    storage_account_kind: Optional[str] = Field(default=None, alias='storageAccountKind')
    region: Optional[str] = None
    quota: Optional[QuotaMetric] = None
    quota_usage: Optional[float] = Field(default=None, alias='quotaUsage')

    @property
    def identity(self) -> tuple:
        return (self.type, self.sku, self.vm_size, self.disk_sku, self.disk_size_gb,
                self.tier, self.capacity, self.storage_account_kind)

    def to_dict(self) -> Dict[str, Any]:
        data = self.model_dump(by_alias=True, exclude={"quota"})
        data["quota"] = self.quota.to_dict() if self.quota else None
        return data
