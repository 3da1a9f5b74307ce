from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, List, Optional


class ServiceDescriptor(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: str = Field(..., description="Service type (e.g., 'metadata', 'access', 'compute').")
    index: Optional[int] = Field(None, description="Dense position of the service inside the asset document.")
    serviceEndpoint: Optional[str] = Field(None, description="URL where the service is consumed.")
    attributes: Dict[str, Any] = Field(default_factory=dict, description="Service specific attributes.")


class ProofRecord(BaseModel):
    checksum: str = Field(..., description="Checksum of the asset document that was signed.")
    creator: str = Field(..., description="Address of the publisher that signed the document.")
    signatureValue: str = Field(..., description="Signature over the checksum.")
    type: str = "DDOIntegritySignature"
    created: Optional[str] = Field(None, description="ISO timestamp of proof generation.")


class PublicKey(BaseModel):
    id: str
    type: str = "EthereumECDSAKey"
    owner: str


class Authentication(BaseModel):
    type: str = "RsaSignatureAuthentication2018"
    publicKey: str


class AssetRecord(BaseModel):
    """Signed asset document (DDO) as stored in the metadata index."""
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    context: str = Field("https://w3id.org/did/v1", alias="@context")
    id: str = Field(..., description="DID of the asset.")
    dataToken: str = Field(..., description="Address of the datatoken backing the asset.")
    created: Optional[str] = None
    publicKey: List[PublicKey] = Field(default_factory=list)
    authentication: List[Authentication] = Field(default_factory=list)
    service: List[ServiceDescriptor] = Field(default_factory=list)
    proof: Optional[ProofRecord] = None

    def find_service_by_type(self, service_type: str) -> ServiceDescriptor | None:
        for service in self.service:
            if service.type == service_type:
                return service
        return None

    def find_service_by_index(self, index: int) -> ServiceDescriptor | None:
        for service in self.service:
            if service.index == index:
                return service
        return None

    def to_document(self) -> Dict[str, Any]:
        """JSON-ready dict in the wire layout of the metadata index."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Publisher(BaseModel):
    address: str = Field(..., description="Ledger address of the publishing account.")
    credential: str = Field(..., repr=False, description="Credential handed to the signer (private key).")


# --- Edit payloads ---

class ServicePrice(BaseModel):
    serviceIndex: int
    cost: str


class EditableMetadata(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    links: Optional[List[Dict[str, Any]]] = None
    servicePrices: Optional[List[ServicePrice]] = None


class ComputePrivacy(BaseModel):
    allowRawAlgorithm: bool = False
    allowNetworkAccess: bool = False
    trustedAlgorithms: List[str] = Field(default_factory=list)


# --- Search ---

class SearchQuery(BaseModel):
    text: Optional[str] = None
    query: Dict[str, Any] = Field(default_factory=dict)
    sort: Dict[str, Any] = Field(default_factory=lambda: {"value": 1})
    offset: int = 100
    page: int = 1


class QueryResult(BaseModel):
    results: List[AssetRecord] = []
    page: int = 0
    totalPages: int = 0
    totalResults: int = 0
