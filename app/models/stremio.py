"""Stremio add-on wire models."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, field_validator


class StremioManifest(BaseModel):
    """Add-on manifest (``/manifest.json``)."""

    model_config = ConfigDict(extra="ignore")

    id: str = ""
    name: str = ""
    version: str = "1.0.0"
    description: Optional[str] = None
    resources: List[str] = []
    types: List[str] = []

    @field_validator("resources", mode="before")
    @classmethod
    def normalize_resources(cls, v: Any) -> List[str]:
        # Resources may be plain names or {"name": ..., "types": [...]} objects
        if isinstance(v, str):
            return [v]
        names = []
        for item in v or []:
            if isinstance(item, str):
                names.append(item)
            elif isinstance(item, dict) and isinstance(item.get("name"), str):
                names.append(item["name"])
        return names


class StremioCatalogItem(BaseModel):
    """Stremio metadata item format (subset)."""

    model_config = ConfigDict(extra="ignore")

    id: str
    type: str
    name: str
    poster: Optional[str] = None
    background: Optional[str] = None


class StremioStream(BaseModel):
    """A single entry from ``/stream/{type}/{id}.json``."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    url: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    behaviorHints: Dict[str, Any] = {}
