"""Asset grid REST API."""

from assetgrid.api.router import router

__all__ = ["router"]
