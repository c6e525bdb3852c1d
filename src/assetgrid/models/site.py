"""Site model - the owner of an asset inventory."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel


class Site(BaseModel):
    """A field site whose assets are tracked on the grid."""

    site_id: UUID
    tenant_id: UUID
    name: str
    client: str
    location: Optional[str] = None
    status: str = "Active"
    created_at: datetime
    updated_at: datetime
