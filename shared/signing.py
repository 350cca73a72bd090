"""
Result signers. The key always comes from settings; nothing is generated or
hard-coded here.
"""
import hashlib
import hmac
from eth_account import Account
from eth_account.messages import encode_defunct
from shared.config import settings


class SigningKeyMissingError(RuntimeError):
    """Raised when a signer is requested but SIGNING_KEY is not configured."""


class HmacSigner:
    """HMAC-SHA256 over the canonical payload (shared-secret scheme)."""

    scheme = "hmac-sha256"

    def __init__(self, key: str):
        if not key:
            raise SigningKeyMissingError("SIGNING_KEY not configured")
        self._key = key.encode("utf-8")

    @property
    def public_id(self) -> str:
        # Fingerprint of the key, safe to publish alongside signatures
        return hashlib.sha256(self._key).hexdigest()[:16]

    def sign(self, payload: bytes) -> str:
        return hmac.new(self._key, payload, hashlib.sha256).hexdigest()

    def verify(self, signature: str, payload: bytes) -> bool:
        return hmac.compare_digest(self.sign(payload), signature or "")


class EthSigner:
    """EIP-191 personal_sign with a secp256k1 key (asymmetric scheme)."""

    scheme = "eip191-secp256k1"

    def __init__(self, private_key: str):
        if not private_key:
            raise SigningKeyMissingError("SIGNING_KEY not configured")
        self._account = Account.from_key(private_key)

    @property
    def public_id(self) -> str:
        return self._account.address

    def sign(self, payload: bytes) -> str:
        signed = self._account.sign_message(encode_defunct(primitive=payload))
        return "0x" + bytes(signed.signature).hex()

    def verify(self, signature: str, payload: bytes) -> bool:
        try:
            recovered = Account.recover_message(encode_defunct(primitive=payload), signature=signature)
        except Exception:
            return False
        return recovered == self._account.address


def get_signer(scheme: str | None = None, key: str | None = None) -> HmacSigner | EthSigner:
    scheme = (scheme or settings.SIGNING_SCHEME).lower()
    key = key if key is not None else settings.SIGNING_KEY
    if scheme == "eth":
        return EthSigner(key)
    if scheme == "hmac":
        return HmacSigner(key)
    raise ValueError(f"unknown signing scheme: {scheme}")
