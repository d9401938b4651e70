import os
import base64
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from leadhub.core.config import settings

NONCE_SIZE = 12


def _get_key() -> bytes:
    key_hex = settings.AES_KEY
    if not key_hex:
        raise ValueError("AES_KEY is not configured")
    return bytes.fromhex(key_hex)


def encrypt(plaintext: str) -> str:
    """AES-256-GCM encrypt, returned as base64(nonce + ciphertext)"""
    aesgcm = AESGCM(_get_key())
    nonce = os.urandom(NONCE_SIZE)
    ciphertext = aesgcm.encrypt(nonce, plaintext.encode("utf-8"), None)
    return base64.b64encode(nonce + ciphertext).decode("utf-8")


def decrypt(encrypted: str) -> str:
    aesgcm = AESGCM(_get_key())
    data = base64.b64decode(encrypted)
    plaintext = aesgcm.decrypt(data[:NONCE_SIZE], data[NONCE_SIZE:], None)
    return plaintext.decode("utf-8")


def mask_secret(value: str) -> str:
    """Show only the first and last four characters of a key"""
    if not value or len(value) < 8:
        return "****"
    return value[:4] + "*" * (len(value) - 8) + value[-4:]
