# qrcheckin/services/cipher_service.py
"""
Symmetric cipher behind the QR payload codec.

AesCbcCipher reproduces the ciphertext format every issued code already
uses:

    key        = scrypt(passphrase, salt, N=2**14, r=8, p=1, dklen=32)
    iv         = 16 zero bytes
    ciphertext = hex(AES-256-CBC(PKCS#7(utf-8 plaintext)))

The IV is fixed, so identical plaintexts give identical ciphertexts and the
scheme is not semantically secure. Call sites only see SymmetricCipher, so a
random-IV / authenticated implementation can replace this one later without
touching the codec.
"""

import logging

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

from qrcheckin.exceptions import DecodeError

logger = logging.getLogger(__name__)

KEY_LENGTH = 32
BLOCK_BYTES = 16
ZERO_IV = bytes(BLOCK_BYTES)

# Same cost parameters as Node's crypto.scryptSync defaults
SCRYPT_N = 2 ** 14
SCRYPT_R = 8
SCRYPT_P = 1


def derive_key(passphrase, salt):
    """Derive the 32-byte AES key from the configured passphrase."""
    kdf = Scrypt(
        salt=salt.encode('utf-8'),
        length=KEY_LENGTH,
        n=SCRYPT_N,
        r=SCRYPT_R,
        p=SCRYPT_P,
    )
    return kdf.derive(passphrase.encode('utf-8'))


class SymmetricCipher:
    """Interface: str in, str out. decrypt() raises DecodeError on any failure."""

    def encrypt(self, plaintext):
        raise NotImplementedError

    def decrypt(self, ciphertext):
        raise NotImplementedError


class AesCbcCipher(SymmetricCipher):

    def __init__(self, key):
        if len(key) != KEY_LENGTH:
            raise ValueError(f"AES-256 key must be {KEY_LENGTH} bytes, got {len(key)}")
        self._key = key

    @classmethod
    def from_passphrase(cls, passphrase, salt='salt'):
        return cls(derive_key(passphrase, salt))

    def _cipher(self):
        return Cipher(algorithms.AES(self._key), modes.CBC(ZERO_IV))

    def encrypt(self, plaintext):
        padder = padding.PKCS7(algorithms.AES.block_size).padder()
        padded = padder.update(plaintext.encode('utf-8')) + padder.finalize()

        encryptor = self._cipher().encryptor()
        raw = encryptor.update(padded) + encryptor.finalize()
        return raw.hex()

    def decrypt(self, ciphertext):
        if not ciphertext or not isinstance(ciphertext, str):
            raise DecodeError('Empty ciphertext')

        try:
            raw = bytes.fromhex(ciphertext.strip())
        except ValueError:
            raise DecodeError('Ciphertext is not hex encoded')

        if not raw or len(raw) % BLOCK_BYTES:
            raise DecodeError('Ciphertext length is not a whole number of blocks')

        try:
            decryptor = self._cipher().decryptor()
            padded = decryptor.update(raw) + decryptor.finalize()

            unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
            plain = unpadder.update(padded) + unpadder.finalize()
            return plain.decode('utf-8')
        except ValueError as e:
            # Wrong key, truncated or tampered ciphertext all land here
            logger.debug("Decryption failed: %s", e)
            raise DecodeError('Ciphertext could not be decrypted')
