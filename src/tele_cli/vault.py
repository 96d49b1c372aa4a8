"""Credential record manager.

Composes the crypto primitives with a record store to implement the vault
lifecycle: initialize, add, open, list, remove. The master credential is
re-read and the master password re-verified on every privileged call;
nothing secret is cached on the Vault object.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Tuple

from . import crypto
from .errors import (
    AlreadyInitializedError,
    CorruptRecordError,
    DuplicateNameError,
    InvalidNameError,
    NotFoundError,
    NotInitializedError,
    WrongPasswordError,
)
from .store import DestinationRecord, MasterCredential, validate_name

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DestinationInfo:
    """Non-secret metadata shown by `tele list`."""

    name: str
    host: str
    port: str
    user: str


@dataclass(frozen=True)
class Connection:
    """A decrypted destination, ready to hand to the SSH launcher."""

    name: str
    host: str
    port: str
    user: str
    password: str = field(repr=False)


class Vault:
    """Vault operations over a record store (see store.JsonStore)."""

    def __init__(self, store):
        self.store = store

    def is_initialized(self) -> bool:
        return self.store.master_exists()

    def _require_initialized(self) -> None:
        if not self.store.master_exists():
            raise NotInitializedError()

    def initialize(self, password: str) -> None:
        """Create the master credential.

        Raises:
            AlreadyInitializedError: A master credential already exists
            ValueError: password is empty

        """
        if self.store.master_exists():
            raise AlreadyInitializedError()
        if not password:
            raise ValueError("Password cannot be empty.")

        salt = crypto.generate_salt()
        password_hash = crypto.hash_password(password, salt)
        self.store.store_master(MasterCredential(salt=salt, password_hash=password_hash))
        logger.debug("master credential created")

    def verify_master(self, password: str) -> None:
        """Raise WrongPasswordError unless password matches master.json."""
        self._require_initialized()
        master = self.store.load_master()
        if not crypto.verify_password(password, master.salt, master.password_hash):
            raise WrongPasswordError()

    def check_new_name(self, name: str) -> None:
        """Raise unless name could be added right now."""
        self._require_initialized()
        validate_name(name)
        if self.store.exists(name):
            raise DuplicateNameError(name)

    def add_destination(
        self,
        master_password: str,
        name: str,
        host: str,
        port: str,
        user: str,
        dest_password: str,
        verify: bool = True,
    ) -> DestinationRecord:
        """Encrypt dest_password under a fresh per-record key and save it.

        Pass verify=False only when the caller has already run
        verify_master() with the same password; each verification costs a
        full Argon2id derivation.
        """
        self.check_new_name(name)
        if verify:
            self.verify_master(master_password)

        salt = crypto.generate_salt()
        key = crypto.derive_key(master_password, salt)
        encrypted, nonce = crypto.encrypt(dest_password.encode('utf-8'), key)

        record = DestinationRecord(
            name=name,
            host=host,
            port=port,
            user=user,
            encrypted_password=encrypted,
            nonce=nonce,
            salt=salt,
        )
        self.store.store(name, record)
        logger.debug("destination %s added", name)
        return record

    def open_destination(self, master_password: str, name: str) -> Connection:
        """Decrypt a destination's password.

        Raises:
            NotFoundError: No such destination
            WrongPasswordError: Master password verification failed
            DecryptionError: Record did not authenticate under the derived key
            CorruptRecordError: Record could not be decoded

        """
        self._require_initialized()
        if not self.store.exists(name):
            raise NotFoundError(name)
        self.verify_master(master_password)

        record = self.store.load(name)
        key = crypto.derive_key(master_password, record.salt)
        plaintext = crypto.decrypt(record.encrypted_password, record.nonce, key)
        try:
            password = plaintext.decode('utf-8')
        except UnicodeDecodeError as e:
            raise CorruptRecordError(name, "encrypted_password", "plaintext is not UTF-8") from e

        return Connection(
            name=name,
            host=record.host,
            port=record.port,
            user=record.user,
            password=password,
        )

    def list_destinations(self) -> Tuple[List[DestinationInfo], Dict[str, CorruptRecordError]]:
        """List destinations without decrypting anything.

        Returns:
            (infos, failures): readable destinations sorted by name, and a
            map of name -> CorruptRecordError for records that failed to load

        """
        self._require_initialized()
        infos = []
        failures = {}
        for name in sorted(self.store.list()):
            try:
                record = self.store.load(name)
            except NotFoundError:
                logger.debug("record %s vanished during listing", name)
                continue
            except CorruptRecordError as e:
                logger.debug("skipping corrupt record %s: %s", name, e)
                failures[name] = e
                continue
            except InvalidNameError as e:
                failures[name] = CorruptRecordError(name, None, e.reason)
                continue
            infos.append(DestinationInfo(
                name=name,
                host=record.host,
                port=record.port,
                user=record.user,
            ))
        return infos, failures

    def remove_destination(self, name: str) -> None:
        self._require_initialized()
        self.store.delete(name)
        logger.debug("destination %s removed", name)
