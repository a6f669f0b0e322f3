"""
Detection Models
================

Typed result of one call to the external vehicle-counting service.

Wire format (service response):
    {
        "LS_to_SA": 5,
        "SA_to_LS": 2,
        "total": 7,
        "direction_uncertain": false,
        "breakdown": {
            "LS_to_SA": {"cars": 3, "trucks": 2, "buses": 0},
            "SA_to_LS": {"cars": 2, "trucks": 0, "buses": 0}
        }
    }

Design Rules:
    - Per-request only, never persisted as an entity
    - A direction-uncertain result never produces traffic levels
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from bridgewatch.models.angle import TrafficLevel, level_for_count


LS_TO_SA = "LS_to_SA"
SA_TO_LS = "SA_to_LS"
DIRECTIONS = (LS_TO_SA, SA_TO_LS)

DIRECTION_LABELS = {
    LS_TO_SA: "Lesotho → South Africa",
    SA_TO_LS: "South Africa → Lesotho",
}


@dataclass(frozen=True, slots=True)
class VehicleBreakdown:
    """Per-class vehicle counts for one direction."""

    cars: int = 0
    trucks: int = 0
    buses: int = 0

    @classmethod
    def from_payload(cls, data: Optional[Mapping[str, Any]]) -> "VehicleBreakdown":
        if not data:
            return cls()
        if not isinstance(data, Mapping):
            raise ValueError(f"Vehicle breakdown must be an object, got {type(data).__name__}")
        return cls(
            cars=_count(data.get("cars", 0)),
            trucks=_count(data.get("trucks", 0)),
            buses=_count(data.get("buses", 0)),
        )

    def describe(self) -> str:
        """Lay description, e.g. '3 cars, 2 trucks'."""
        parts = []
        for name, value in (("car", self.cars), ("truck", self.trucks), ("bus", self.buses)):
            if value:
                plural = "es" if name == "bus" else "s"
                parts.append(f"{value} {name}{plural if value != 1 else ''}")
        return ", ".join(parts) if parts else "no vehicles"


@dataclass(frozen=True, slots=True)
class DetectorResult:
    """
    Directional vehicle counts from the detection service.

    Attributes:
        ls_to_sa: Vehicles heading from Lesotho into South Africa
        sa_to_ls: Vehicles heading from South Africa into Lesotho
        total: Total vehicles in view
        direction_uncertain: Counts must not be trusted per direction
        breakdown: Class breakdown keyed by direction constant
    """

    ls_to_sa: int
    sa_to_ls: int
    total: int
    direction_uncertain: bool = False
    breakdown: Dict[str, VehicleBreakdown] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> "DetectorResult":
        """
        Build a result from the service's JSON body.

        Raises:
            ValueError: If required fields are missing or malformed
        """
        if not isinstance(data, Mapping):
            raise ValueError(f"Detector payload must be an object, got {type(data).__name__}")
        try:
            ls_to_sa = _count(data[LS_TO_SA])
            sa_to_ls = _count(data[SA_TO_LS])
        except KeyError as e:
            raise ValueError(f"Detector payload missing field {e}")

        total = _count(data.get("total", ls_to_sa + sa_to_ls))
        raw_breakdown = data.get("breakdown") or {}
        if not isinstance(raw_breakdown, Mapping):
            raise ValueError("Detector breakdown must be an object")

        return cls(
            ls_to_sa=ls_to_sa,
            sa_to_ls=sa_to_ls,
            total=total,
            direction_uncertain=bool(data.get("direction_uncertain", False)),
            breakdown={
                direction: VehicleBreakdown.from_payload(raw_breakdown.get(direction))
                for direction in DIRECTIONS
            },
        )

    def count(self, direction: str) -> int:
        if direction == LS_TO_SA:
            return self.ls_to_sa
        if direction == SA_TO_LS:
            return self.sa_to_ls
        raise ValueError(f"Unknown direction: {direction}")

    def to_dict(self) -> dict:
        """Export as dictionary for logging/serialization."""
        return {
            LS_TO_SA: self.ls_to_sa,
            SA_TO_LS: self.sa_to_ls,
            "total": self.total,
            "direction_uncertain": self.direction_uncertain,
            "breakdown": {
                direction: {
                    "cars": b.cars,
                    "trucks": b.trucks,
                    "buses": b.buses,
                }
                for direction, b in self.breakdown.items()
            },
        }


def traffic_levels(result: Optional[DetectorResult]) -> Optional[Dict[str, TrafficLevel]]:
    """
    Derive per-direction traffic levels from a detector result.

    A missing result and a direction-uncertain result are treated the
    same way: no levels at all, so nothing downstream can present them
    as coming from automated detection.

    Returns:
        Mapping of direction constant to level, or None
    """
    if result is None or result.direction_uncertain:
        return None
    return {direction: level_for_count(result.count(direction)) for direction in DIRECTIONS}


def _count(value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError(f"Invalid count: {value!r}")
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValueError(f"Invalid count: {value!r}")
    if number < 0:
        raise ValueError(f"Negative count: {number}")
    return number
