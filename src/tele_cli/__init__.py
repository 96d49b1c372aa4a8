"""tele - SSH destination vault.
Stores SSH credentials encrypted under a master password (Argon2id + AES-256-GCM).
"""

__version__ = "1.0.0"
