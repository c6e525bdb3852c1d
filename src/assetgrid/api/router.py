"""REST API router."""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.encoders import jsonable_encoder
from sqlalchemy.ext.asyncio import AsyncSession

from assetgrid import __version__
from assetgrid.api.deps import (
    get_actor_user_id,
    get_db_session,
    get_tenant_id,
    verify_api_key,
)
from assetgrid.api.schemas import (
    AssigneeProfileRequest,
    AssigneeProfileResponse,
    CreateCommentRequest,
    HealthResponse,
    ListAssetsResponse,
    ListEventsResponse,
    ListSitesResponse,
    MetricsResponse,
    UpdateAssetRequest,
)
from assetgrid.engine import (
    AssetGridEngine,
    AssetGridError,
    AssetNotFound,
    SiteNotFound,
    StoreUnavailable,
    VersionConflict,
)
from assetgrid.models import GridAsset, GridAssetEvent, GridAssetStatus, Site, SiteProgress

router = APIRouter(prefix="/v1", dependencies=[Depends(verify_api_key)])


def _http_error(error: AssetGridError) -> HTTPException:
    """Map engine errors to HTTP responses."""
    if isinstance(error, (AssetNotFound, SiteNotFound)):
        status_code = 404
    elif isinstance(error, VersionConflict):
        status_code = 409
    elif isinstance(error, StoreUnavailable):
        status_code = 503
    else:
        status_code = 400

    detail = {"code": error.code, "message": error.message}
    if isinstance(error, VersionConflict):
        detail["current"] = jsonable_encoder(error.current)
    return HTTPException(status_code=status_code, detail=detail)


# ============================================================================
# Health & Metrics
# ============================================================================


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    return HealthResponse(status="healthy", version=__version__)


@router.get("/metrics", response_model=MetricsResponse)
async def get_metrics(
    session: AsyncSession = Depends(get_db_session),
):
    """In-process counters and latency histograms."""
    engine = AssetGridEngine(session)
    return MetricsResponse(**await engine.get_metrics_snapshot())


# ============================================================================
# Sites
# ============================================================================


@router.get("/sites", response_model=ListSitesResponse)
async def list_sites(
    session: AsyncSession = Depends(get_db_session),
    tenant_id: UUID = Depends(get_tenant_id),
):
    """List the tenant's sites."""
    engine = AssetGridEngine(session)
    try:
        return ListSitesResponse(sites=await engine.list_sites(tenant_id))
    except AssetGridError as e:
        raise _http_error(e)


@router.get("/sites/{site_id}", response_model=Site)
async def get_site(
    site_id: UUID,
    session: AsyncSession = Depends(get_db_session),
    tenant_id: UUID = Depends(get_tenant_id),
):
    """Get a site by ID."""
    engine = AssetGridEngine(session)
    try:
        return await engine.get_site(tenant_id, site_id)
    except AssetGridError as e:
        raise _http_error(e)


@router.get("/sites/{site_id}/assets", response_model=ListAssetsResponse)
async def list_site_assets(
    site_id: UUID,
    status: Optional[GridAssetStatus] = Query(None),
    limit: Optional[int] = Query(None, ge=1),
    offset: int = Query(0, ge=0),
    session: AsyncSession = Depends(get_db_session),
    tenant_id: UUID = Depends(get_tenant_id),
):
    """List the asset grid for a site."""
    engine = AssetGridEngine(session)
    try:
        assets = await engine.list_assets(
            tenant_id=tenant_id,
            site_id=site_id,
            status=status.value if status else None,
            limit=limit,
            offset=offset,
        )
    except AssetGridError as e:
        raise _http_error(e)
    return ListAssetsResponse(assets=assets, count=len(assets))


@router.get("/sites/{site_id}/progress", response_model=SiteProgress)
async def get_site_progress(
    site_id: UUID,
    session: AsyncSession = Depends(get_db_session),
    tenant_id: UUID = Depends(get_tenant_id),
):
    """Status counts and completion percentage for a site."""
    engine = AssetGridEngine(session)
    try:
        return await engine.get_site_progress(tenant_id, site_id)
    except AssetGridError as e:
        raise _http_error(e)


# ============================================================================
# Assets
# ============================================================================


@router.get("/assets/{asset_id}", response_model=GridAsset)
async def get_asset(
    asset_id: UUID,
    session: AsyncSession = Depends(get_db_session),
    tenant_id: UUID = Depends(get_tenant_id),
):
    """Get an asset by ID."""
    engine = AssetGridEngine(session)
    try:
        return await engine.get_asset(tenant_id, asset_id)
    except AssetGridError as e:
        raise _http_error(e)


@router.patch("/assets/{asset_id}", response_model=GridAsset)
async def update_asset(
    asset_id: UUID,
    request: UpdateAssetRequest,
    session: AsyncSession = Depends(get_db_session),
    tenant_id: UUID = Depends(get_tenant_id),
    actor_user_id: Optional[str] = Depends(get_actor_user_id),
):
    """
    Apply a patch against the caller's version stamp.

    409 carries the current record so the client can reconcile without
    another round trip.
    """
    engine = AssetGridEngine(session)
    try:
        return await engine.update_asset(
            tenant_id=tenant_id,
            asset_id=asset_id,
            expected_version=request.expected_version,
            patch=request.to_patch(),
            actor_user_id=actor_user_id,
            message=request.message,
        )
    except AssetGridError as e:
        raise _http_error(e)


@router.get("/assets/{asset_id}/events", response_model=ListEventsResponse)
async def list_asset_events(
    asset_id: UUID,
    limit: Optional[int] = Query(None, ge=1),
    after: Optional[UUID] = Query(None),
    session: AsyncSession = Depends(get_db_session),
    tenant_id: UUID = Depends(get_tenant_id),
):
    """Asset history, oldest first."""
    engine = AssetGridEngine(session)
    try:
        events, next_cursor = await engine.list_events(
            tenant_id=tenant_id,
            asset_id=asset_id,
            limit=limit,
            after=after,
        )
    except AssetGridError as e:
        raise _http_error(e)
    return ListEventsResponse(events=events, next_cursor=next_cursor)


@router.post("/assets/{asset_id}/comments", response_model=GridAssetEvent, status_code=201)
async def create_comment(
    asset_id: UUID,
    request: CreateCommentRequest,
    session: AsyncSession = Depends(get_db_session),
    tenant_id: UUID = Depends(get_tenant_id),
    actor_user_id: Optional[str] = Depends(get_actor_user_id),
):
    """Add a comment to an asset's history."""
    engine = AssetGridEngine(session)
    try:
        return await engine.add_comment(
            tenant_id=tenant_id,
            asset_id=asset_id,
            message=request.message,
            actor_user_id=actor_user_id,
        )
    except AssetGridError as e:
        raise _http_error(e)


# ============================================================================
# Assignee projection
# ============================================================================


@router.put("/assignees/{user_id}/profile", response_model=AssigneeProfileResponse)
async def sync_assignee_profile(
    user_id: str,
    request: AssigneeProfileRequest,
    session: AsyncSession = Depends(get_db_session),
    tenant_id: UUID = Depends(get_tenant_id),
):
    """Refresh assignee display fields on every asset assigned to the user."""
    engine = AssetGridEngine(session)
    try:
        refreshed = await engine.sync_assignee_profile(
            tenant_id=tenant_id,
            user_id=user_id,
            name=request.name,
            avatar=request.avatar,
        )
    except AssetGridError as e:
        raise _http_error(e)
    return AssigneeProfileResponse(user_id=user_id, assets_refreshed=refreshed)
