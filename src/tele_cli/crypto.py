"""Key derivation, password verification and record encryption.

Master password -> Argon2id -> 32-byte key. The same derivation produces the
verification hash stored in master.json (with the master salt) and the
per-record encryption key (with each record's own salt). Records are sealed
with AES-256-GCM under a fresh 12-byte nonce.
"""

import nacl.bindings
import nacl.exceptions
import nacl.utils
from argon2.exceptions import HashingError
from argon2.low_level import Type, hash_secret_raw
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from .errors import DecryptionError, EntropyUnavailableError, KeyDerivationError

# Constants
SALT_SIZE = 16
KEY_SIZE = 32
NONCE_SIZE = 12
TAG_SIZE = 16
ARGON_TIME = 1
ARGON_MEMORY = 64 * 1024  # KiB
ARGON_PARALLELISM = 4


def random_bytes(size):
    """Read size bytes from the libsodium CSPRNG."""
    try:
        return nacl.utils.random(size)
    except (OSError, nacl.exceptions.CryptoError) as e:
        raise EntropyUnavailableError(str(e)) from e


def generate_salt():
    """Return a random 16-byte salt."""
    return random_bytes(SALT_SIZE)


def derive_key(password, salt):
    """Derive a 32-byte key from password and salt using Argon2id."""
    try:
        return hash_secret_raw(
            secret=password.encode('utf-8'),
            salt=salt,
            time_cost=ARGON_TIME,
            memory_cost=ARGON_MEMORY,
            parallelism=ARGON_PARALLELISM,
            hash_len=KEY_SIZE,
            type=Type.ID,
        )
    except HashingError as e:
        raise KeyDerivationError(str(e)) from e


def hash_password(password, salt):
    """Hash a password for storage in master.json.

    This is derive_key() itself; the output is used as a verifier instead
    of as a cipher key.
    """
    return derive_key(password, salt)


def verify_password(password, salt, stored_hash):
    """Check password against stored_hash in constant time."""
    return nacl.bindings.sodium_memcmp(hash_password(password, salt), bytes(stored_hash))


def _aead(key):
    if len(key) != KEY_SIZE:
        raise ValueError(f"key must be {KEY_SIZE} bytes, got {len(key)}")
    return AESGCM(key)


def encrypt(plaintext, key):
    """Encrypt plaintext with AES-256-GCM under a fresh random nonce.

    Returns:
        (ciphertext, nonce) where ciphertext has the 16-byte tag appended

    """
    aead = _aead(key)
    nonce = random_bytes(NONCE_SIZE)
    ciphertext = aead.encrypt(nonce, plaintext, None)
    return ciphertext, nonce


def decrypt(ciphertext, nonce, key):
    """Decrypt and authenticate ciphertext.

    Raises:
        DecryptionError: The tag did not verify
        ValueError: key or nonce has the wrong length

    """
    aead = _aead(key)
    if len(nonce) != NONCE_SIZE:
        raise ValueError(f"nonce must be {NONCE_SIZE} bytes, got {len(nonce)}")
    if len(ciphertext) < TAG_SIZE:
        raise DecryptionError()
    try:
        return aead.decrypt(nonce, ciphertext, None)
    except InvalidTag as e:
        raise DecryptionError() from e
