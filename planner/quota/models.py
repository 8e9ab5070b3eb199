"""Data models for quota information."""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class QuotaSpec:
    """A (resource type, quota endpoint) pair to fetch once per region."""
    resource_type: str
    endpoint_id: str


@dataclass
class QuotaMetric:
    """One usage metric for a resource type in a region."""
    resource_type: str
    region: str
    metric_name: str
    limit: float
    current_value: float
    endpoint_id: str = ""
    display_name: Optional[str] = None
    unit: Optional[str] = None

    @property
    def available(self) -> float:
        """Calculate available quota."""
        return self.limit - self.current_value

    @property
    def percent_used(self) -> Optional[float]:
        if self.limit <= 0:
            return None
        return round(self.current_value * 100.0 / self.limit)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "resourceType": self.resource_type,
            "region": self.region,
            "metric": self.metric_name,
            "displayName": self.display_name,
            "unit": self.unit,
            "endpoint": self.endpoint_id,
            "limit": self.limit,
            "currentValue": self.current_value,
            "available": self.available,
            "percentUsed": self.percent_used,
        }


@dataclass
class QuotaResult:
    """Quota metrics fetched for one spec in one region."""
    resource_type: str
    endpoint_id: str
    region: str
    quotas: List[QuotaMetric] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "resourceType": self.resource_type,
            "endpoint": self.endpoint_id,
            "region": self.region,
            "quotas": [q.to_dict() for q in self.quotas],
        }


@dataclass
class QuotaReport:
    """Quota results for the source and target regions."""
    source_region: str
    target_region: Optional[str]
    source: List[QuotaResult]
    target: List[QuotaResult] = field(default_factory=list)

    def summary_rows(self) -> List[Dict[str, Any]]:
        """Flatten every metric into a row for tabular output."""
        rows = []
        for result in self.source + self.target:
            for metric in result.quotas:
                rows.append({
                    "region": metric.region,
                    "resourceType": metric.resource_type,
                    "metric": metric.display_name or metric.metric_name,
                    "limit": metric.limit,
                    "current": metric.current_value,
                    "available": metric.available,
                    "percentUsed": metric.percent_used,
                })
        return rows

    def save(self, output_path: str) -> None:
        """Save quota results to JSON file.

        Args:
            output_path: Path to write the JSON file.
        """
        import json
        result = {
            "sourceRegion": self.source_region,
            "targetRegion": self.target_region,
            "source": [r.to_dict() for r in self.source],
            "target": [r.to_dict() for r in self.target],
        }

        with open(output_path, 'w') as f:
            json.dump(result, f, indent=2)
