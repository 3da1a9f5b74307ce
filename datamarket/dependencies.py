"""
Wires the workflows to the collaborators configured in ``config``.

Each getter is cached so the app shares one client per collaborator. Tests
replace the ``get_*_service`` getters through ``app.dependency_overrides``.
"""

from eth_account import Account
from web3 import Web3
from fastapi import HTTPException, status
import logging
from functools import lru_cache

from . import config
from .models.asset_models import Publisher
from .services.assets_service import AssetsService
from .services.consume_service import ConsumeService
from .services.ledger_service import Web3Ledger, load_abi
from .services.metadata_service import MetadataIndexClient
from .services.order_service import OrderService
from .services.provider_service import ProviderClient
from .services.publish_service import PublishService
from .services.signature_service import EthSigner

logger = logging.getLogger(__name__)


@lru_cache
def get_ledger() -> Web3Ledger:
    if not config.RPC_URL or not config.FACTORY_ADDRESS:
        logger.error("Cannot create ledger client: RPC_URL or FACTORY_ADDRESS not configured.")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Ledger not configured.")

    w3 = Web3(Web3.HTTPProvider(config.RPC_URL))
    if not w3.is_connected():
        logger.error(f"Failed to connect to RPC URL: {config.RPC_URL}")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Ledger node unreachable.")
    logger.info(f"Connected to RPC URL: {config.RPC_URL}")

    factory_abi = load_abi(config.FACTORY_ABI_PATH)
    datatoken_abi = load_abi(config.DATATOKEN_ABI_PATH)
    if not factory_abi or not datatoken_abi:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Contract ABIs not loaded.")

    return Web3Ledger(w3, config.FACTORY_ADDRESS, factory_abi, datatoken_abi, config.BACKEND_WALLET_PRIVATE_KEY, config.DEFAULT_TOKEN_CAP)


@lru_cache
def get_provider() -> ProviderClient:
    return ProviderClient(config.PROVIDER_URL, config.HTTP_TIMEOUT_SECONDS, config.BACKEND_WALLET_PRIVATE_KEY)


@lru_cache
def get_index() -> MetadataIndexClient:
    return MetadataIndexClient(config.METADATA_INDEX_URL, config.HTTP_TIMEOUT_SECONDS)


@lru_cache
def get_signer() -> EthSigner:
    return EthSigner()


def get_publisher() -> Publisher:
    """The backend wallet publishes and signs every asset."""
    if not config.BACKEND_WALLET_PRIVATE_KEY:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Backend wallet not configured.")
    account = Account.from_key(config.BACKEND_WALLET_PRIVATE_KEY)
    return Publisher(address=account.address, credential=config.BACKEND_WALLET_PRIVATE_KEY)


# --- Workflows ---

def get_publish_service() -> PublishService:
    return PublishService(get_ledger(), get_provider(), get_index(), get_signer())


@lru_cache
def get_order_service() -> OrderService:
    # Cached so the per-order lock table is shared between requests
    return OrderService(get_ledger(), get_provider(), get_index(), serialize_orders=config.ORDER_SERIALIZATION)


def get_consume_service() -> ConsumeService:
    return ConsumeService(get_provider(), get_index())


def get_assets_service() -> AssetsService:
    return AssetsService(get_index(), get_provider(), get_signer(), strict_proofs=config.STRICT_PROOF_VERIFICATION)
