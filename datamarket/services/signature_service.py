from eth_account import Account
from eth_account.messages import encode_defunct
from web3 import Web3
import logging

from ..errors import SigningError

logger = logging.getLogger(__name__)


class EthSigner:
    """Signs text with a local private key using the personal-message scheme."""

    def sign(self, checksum: str, credential: str) -> str:
        if not credential:
            raise SigningError("No signing credential provided.")
        try:
            signed = Account.sign_message(encode_defunct(text=checksum), private_key=credential)
        except (ValueError, TypeError) as e:
            # Never log the credential itself
            logger.error(f"Failed to sign checksum {checksum}: {type(e).__name__}")
            raise SigningError(f"Invalid signing credential: {type(e).__name__}") from e
        return Web3.to_hex(signed.signature)

    def verify(self, checksum: str, signature: str) -> str:
        try:
            return Account.recover_message(encode_defunct(text=checksum), signature=signature)
        except Exception as e:
            logger.error(f"Failed to recover signer of checksum {checksum}: {e}")
            raise SigningError(f"Could not recover signer: {e}") from e
