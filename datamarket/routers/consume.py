from fastapi import APIRouter, Depends, HTTPException, status
import logging

from .. import config
from ..dependencies import get_consume_service
from ..errors import MissingEndpointError, TransportError
from ..models.api_models import DownloadRequest, DownloadResponse, ErrorResponse, SimpleDownloadRequest
from ..models.result_models import ErrorKind
from ..services.consume_service import ConsumeService

router = APIRouter(
    prefix="/consume",
    tags=["Consume"],
)

logger = logging.getLogger(__name__)


@router.post(
    "/download",
    response_model=DownloadResponse,
    responses={
        status.HTTP_404_NOT_FOUND: {"model": ErrorResponse},
        status.HTTP_422_UNPROCESSABLE_ENTITY: {"model": ErrorResponse},
        status.HTTP_502_BAD_GATEWAY: {"model": ErrorResponse},
    },
)
async def download_asset(request: DownloadRequest, consume: ConsumeService = Depends(get_consume_service)):
    """Downloads the files of a paid asset into the configured download directory."""
    try:
        outcome = await consume.download(
            request.did,
            request.tx_id,
            request.token_address,
            request.consumer_address,
            destination=config.DOWNLOAD_DIR,
        )
    except MissingEndpointError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    except TransportError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))

    if not outcome.ok:
        code = status.HTTP_404_NOT_FOUND if outcome.error in (ErrorKind.NOT_FOUND, ErrorKind.SERVICE_NOT_FOUND) else 400
        raise HTTPException(status_code=code, detail=outcome.message)
    return DownloadResponse(destination=outcome.value)


@router.post(
    "/simple",
    response_model=DownloadResponse,
    responses={status.HTTP_502_BAD_GATEWAY: {"model": ErrorResponse}},
)
async def simple_download(request: SimpleDownloadRequest, consume: ConsumeService = Depends(get_consume_service)):
    """Downloads straight from a known service endpoint."""
    try:
        await consume.simple_download(
            request.token_address,
            request.service_endpoint,
            request.tx_id,
            request.consumer_address,
            destination=config.DOWNLOAD_DIR,
        )
    except TransportError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))
    return DownloadResponse(destination=config.DOWNLOAD_DIR)
