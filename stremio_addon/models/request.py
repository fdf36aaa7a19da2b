"""
Resource Request Model
Per-request input handed to addon handlers
"""
from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, Optional
from stremio_addon.models.stremio import Meta


class ResourceRequest(BaseModel):
    """A decoded resource request, never mutated after construction"""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    resource: str = Field(..., description="Resource name, e.g. stream")
    type: str = Field(..., description="Content type, e.g. movie or series")
    id: str = Field(..., description="Item id, or catalog id for catalog requests")
    # None means the request carried no configuration, which differs from an empty one
    user_data: Optional[Any] = None
    extra: Dict[str, str] = Field(default_factory=dict, description="Catalog extra arguments")
    meta: Optional[Meta] = None
