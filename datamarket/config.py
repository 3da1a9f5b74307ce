import os
from dotenv import load_dotenv

load_dotenv()

RPC_URL = os.getenv("RPC_URL")
BACKEND_WALLET_PRIVATE_KEY = os.getenv("BACKEND_WALLET_PRIVATE_KEY")

# Datatoken factory deployment
FACTORY_ADDRESS = os.getenv("FACTORY_ADDRESS")
FACTORY_ABI_PATH = os.getenv("FACTORY_ABI_PATH", "artifacts/DTFactory.json")
DATATOKEN_ABI_PATH = os.getenv("DATATOKEN_ABI_PATH", "artifacts/DataTokenTemplate.json")

# Off-chain services
PROVIDER_URL = os.getenv("PROVIDER_URL", "http://localhost:8030")
METADATA_INDEX_URL = os.getenv("METADATA_INDEX_URL", "http://localhost:5000")

DOWNLOAD_DIR = os.getenv("DOWNLOAD_DIR", "downloads")

# Cap used when publishing without an explicit one (in token units, not wei)
DEFAULT_TOKEN_CAP = os.getenv("DEFAULT_TOKEN_CAP", "1000")

try:
    HTTP_TIMEOUT_SECONDS = int(os.getenv("HTTP_TIMEOUT_SECONDS", "60"))
except ValueError:
    print("Warning: Invalid HTTP_TIMEOUT_SECONDS in .env file. Defaulting to 60.")
    HTTP_TIMEOUT_SECONDS = 60

# --- Behaviour switches ---
# Reject assets whose proof signer does not match the declared creator
STRICT_PROOF_VERIFICATION = os.getenv("STRICT_PROOF_VERIFICATION", "false").lower() in ("1", "true", "yes")
# Serialize concurrent orders for the same (did, service index, consumer)
ORDER_SERIALIZATION = os.getenv("ORDER_SERIALIZATION", "false").lower() in ("1", "true", "yes")

# Basic validation
if not RPC_URL:
    print("Warning: RPC_URL not found in .env file. Ledger interactions will fail.")
if not FACTORY_ADDRESS:
    print("Warning: FACTORY_ADDRESS not found in .env file. Datatoken creation will fail.")
if not BACKEND_WALLET_PRIVATE_KEY:
    print("Warning: BACKEND_WALLET_PRIVATE_KEY not found in .env file. Publishing and ordering will fail.")
