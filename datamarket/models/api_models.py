from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional
from datetime import datetime

from .asset_models import ServiceDescriptor


class ErrorResponse(BaseModel):
    detail: str


class PublishRequest(BaseModel):
    metadata: Dict[str, Any] = Field(..., description="Asset metadata; 'main.files' holds the cleartext file references.")
    services: List[ServiceDescriptor] = Field([], description="Extra services (access, compute) to attach.")
    data_token_address: Optional[str] = Field(None, description="Existing datatoken to reuse instead of creating one.")
    cap: Optional[str] = Field(None, description="Token cap in token units.")
    name: Optional[str] = None
    symbol: Optional[str] = None


class PublishResponse(BaseModel):
    job_id: str = Field(..., description="Unique ID for the background publish job.")
    message: str = "Publish job initiated successfully. Check status later."


class PublishJobStatus(BaseModel):
    job_id: str
    status: str = Field(..., description="Current status (PENDING, one of the publish steps, COMPLETED or FAILED).")
    message: Optional[str] = Field(None, description="Optional message, e.g., error details.")
    steps: List[str] = Field([], description="Publish steps reached so far, in order.")
    did: Optional[str] = None
    data_token_address: Optional[str] = None
    error: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class InitializeRequest(BaseModel):
    did: str
    service_type: str
    consumer_address: str
    service_index: int = -1


class OrderRequest(BaseModel):
    did: str
    consumer_address: str = Field(..., description="Address that receives access to the service.")
    service_type: Optional[str] = Field(None, description="Service to order by type. Exclusive with service_index.")
    service_index: Optional[int] = Field(None, description="Service to order by index. Exclusive with service_type.")
    fee_collector: Optional[str] = Field(None, description="Marketplace fee collector address.")


class DownloadRequest(BaseModel):
    did: str
    tx_id: str = Field(..., description="Transaction hash of the order paying for access.")
    token_address: str
    consumer_address: str


class SimpleDownloadRequest(BaseModel):
    token_address: str
    service_endpoint: str
    tx_id: str
    consumer_address: str


class DownloadResponse(BaseModel):
    destination: Optional[str] = None
    message: str = "Files downloaded successfully"
