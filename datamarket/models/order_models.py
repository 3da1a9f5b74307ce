from pydantic import BaseModel, ConfigDict, Field


class OrderQuote(BaseModel):
    """Price the provider asks for consuming one service. Never persisted."""
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    tokenAddress: str = Field(..., alias="dataToken", description="Datatoken to pay with.")
    numTokens: int = Field(..., description="Price in base units (wei).")
    serviceIndex: int | None = None


class OrderReceipt(BaseModel):
    transactionHash: str = Field(..., description="Hash of the startOrder transaction.")
    serviceIndex: int
    did: str
    timeout: int = Field(0, description="Seconds the order stays reusable; 0 means forever.")
    reused: bool = Field(False, description="True when an earlier, still valid order was returned.")
