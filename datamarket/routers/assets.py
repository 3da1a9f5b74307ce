from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
import logging
import uuid
from datetime import datetime, timezone
from typing import List

from .. import job_store
from ..dependencies import get_assets_service, get_publish_service, get_publisher
from ..errors import DataMarketError
from ..models.api_models import ErrorResponse, PublishJobStatus, PublishRequest, PublishResponse
from ..models.asset_models import AssetRecord, ComputePrivacy, EditableMetadata, Publisher, QueryResult, SearchQuery
from ..models.result_models import ErrorKind
from ..services.assets_service import AssetsService
from ..services.publish_service import PublishService

router = APIRouter(
    prefix="/assets",
    tags=["Assets"],
)

logger = logging.getLogger(__name__)

_ERROR_STATUS = {
    ErrorKind.VALIDATION: status.HTTP_400_BAD_REQUEST,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.SERVICE_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.PROOF_MISMATCH: status.HTTP_409_CONFLICT,
    ErrorKind.INDEX_UPDATE_FAILED: status.HTTP_502_BAD_GATEWAY,
}


async def run_publish_job(job_id: str, request: PublishRequest, publisher: Publisher, publish_service: PublishService):
    """Background task running the publish workflow and mirroring its progress in the job store."""
    logger.info(f"Background publish job {job_id} started for publisher {publisher.address}")
    try:
        outcome = await publish_service.publish(
            request.metadata,
            publisher,
            services=request.services,
            data_token_address=request.data_token_address,
            cap=request.cap,
            name=request.name,
            symbol=request.symbol,
            on_progress=lambda step: job_store.record_step(job_id, step.value),
        )
    except DataMarketError as e:
        logger.error(f"Publish job {job_id} failed: {e}", exc_info=True)
        job_store.update_job_status(job_id, "FAILED", str(e), error=type(e).__name__)
        return
    except Exception as e:
        logger.error(f"Unexpected error in publish job {job_id}: {e}", exc_info=True)
        job_store.update_job_status(job_id, "FAILED", "An unexpected error occurred.", error=type(e).__name__)
        return

    if outcome.ok:
        job_store.update_job_status(
            job_id, "COMPLETED", did=outcome.value.id, data_token_address=outcome.value.dataToken
        )
    else:
        job_store.update_job_status(job_id, "FAILED", outcome.message, error=outcome.error.value)


@router.post(
    "",
    response_model=PublishResponse,
    status_code=status.HTTP_202_ACCEPTED,
    responses={status.HTTP_503_SERVICE_UNAVAILABLE: {"model": ErrorResponse}},
)
def publish_asset(
    request: PublishRequest,
    background_tasks: BackgroundTasks,
    publisher: Publisher = Depends(get_publisher),
    publish_service: PublishService = Depends(get_publish_service),
):
    """
    Starts publishing an asset in the background.

    Poll `/assets/jobs/{job_id}` for the progress steps and the resulting DID.
    """
    job_id = str(uuid.uuid4())
    now = datetime.now(timezone.utc)
    job_store.store_job(PublishJobStatus(job_id=job_id, status="PENDING", created_at=now, updated_at=now))
    background_tasks.add_task(run_publish_job, job_id, request, publisher, publish_service)
    logger.info(f"Publish job {job_id} queued")
    return PublishResponse(job_id=job_id)


@router.get(
    "/jobs/{job_id}",
    response_model=PublishJobStatus,
    responses={status.HTTP_404_NOT_FOUND: {"model": ErrorResponse}},
)
def get_publish_job(job_id: str):
    job = job_store.get_job(job_id)
    if not job:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Publish job {job_id} not found")
    return job


@router.get("/search", response_model=QueryResult)
async def search_assets(text: str = Query(..., min_length=1), assets: AssetsService = Depends(get_assets_service)):
    return await assets.search(text)


@router.post("/query", response_model=QueryResult)
async def query_assets(search_query: SearchQuery, assets: AssetsService = Depends(get_assets_service)):
    return await assets.query(search_query)


@router.get("/owner/{owner_address}", response_model=List[AssetRecord])
async def get_owner_assets(owner_address: str, assets: AssetsService = Depends(get_assets_service)):
    return await assets.owner_assets(owner_address)


@router.get(
    "/{did}",
    response_model=AssetRecord,
    response_model_by_alias=True,
    responses={status.HTTP_404_NOT_FOUND: {"model": ErrorResponse}},
)
async def resolve_asset(did: str, assets: AssetsService = Depends(get_assets_service)):
    document = await assets.resolve(did)
    if document is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Asset {did} not found")
    return document


@router.get("/{did}/creator", responses={status.HTTP_404_NOT_FOUND: {"model": ErrorResponse}})
async def get_asset_creator(did: str, assets: AssetsService = Depends(get_assets_service)):
    outcome = await assets.creator(did)
    if not outcome.ok:
        raise HTTPException(status_code=_ERROR_STATUS.get(outcome.error, 400), detail=outcome.message)
    return {"did": did, "creator": outcome.value}


@router.put("/{did}/metadata", response_model=AssetRecord, response_model_by_alias=True)
async def edit_asset_metadata(
    did: str,
    new_metadata: EditableMetadata,
    publisher: Publisher = Depends(get_publisher),
    assets: AssetsService = Depends(get_assets_service),
):
    outcome = await assets.edit_metadata(did, new_metadata, publisher.address)
    if not outcome.ok:
        raise HTTPException(status_code=_ERROR_STATUS.get(outcome.error, 400), detail=outcome.message)
    return outcome.value


@router.put("/{did}/services/{service_index}/privacy", response_model=AssetRecord, response_model_by_alias=True)
async def update_compute_privacy(
    did: str,
    service_index: int,
    compute_privacy: ComputePrivacy,
    publisher: Publisher = Depends(get_publisher),
    assets: AssetsService = Depends(get_assets_service),
):
    outcome = await assets.update_compute_privacy(did, service_index, compute_privacy, publisher.address)
    if not outcome.ok:
        raise HTTPException(status_code=_ERROR_STATUS.get(outcome.error, 400), detail=outcome.message)
    return outcome.value
