"""Region inference from a bounding-box table."""

from __future__ import annotations

from dataclasses import dataclass

from erfinder.common.geometry import BoundingBox, Coordinates


@dataclass(frozen=True)
class Region:
    name: str
    bbox: BoundingBox


@dataclass(frozen=True)
class RegionTable:
    regions: tuple[Region, ...]
    default_region: str

    @classmethod
    def from_config(cls, regions_cfg: dict) -> "RegionTable":
        return cls(
            regions=tuple(
                Region(name=str(entry["name"]), bbox=BoundingBox.from_dict(entry["bbox"]))
                for entry in regions_cfg["regions"]
            ),
            default_region=str(regions_cfg["default_region"]),
        )

    def infer(self, origin: Coordinates) -> str:
        """First region in table order whose box contains the origin."""
        for region in self.regions:
            if region.bbox.contains(origin.lat, origin.lon):
                return region.name
        return self.default_region
