"""JSON record store for the master credential and destinations.

Layout under the vault directory:

    master.json                 {"salt", "password_hash"}
    destinations/<name>.json    {"host", "port", "user",
                                 "encrypted_password", "nonce", "salt"}

Binary fields are hex on disk and bytes everywhere else. Every write goes
to a temporary file that is renamed over the target.
"""

import binascii
import json
import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Set

from .config import FILE_MODE, ensure_dir
from .crypto import KEY_SIZE, NONCE_SIZE, SALT_SIZE, TAG_SIZE
from .errors import (
    AlreadyInitializedError,
    CorruptRecordError,
    InvalidNameError,
    NotFoundError,
    NotInitializedError,
)

logger = logging.getLogger(__name__)

MASTER_FILE = "master.json"
DESTINATIONS_DIR = "destinations"
RECORD_SUFFIX = ".json"
MASTER_NAME = "master"


@dataclass(frozen=True)
class MasterCredential:
    salt: bytes
    password_hash: bytes


@dataclass(frozen=True)
class DestinationRecord:
    name: str
    host: str
    port: str
    user: str
    encrypted_password: bytes
    nonce: bytes
    salt: bytes


def validate_name(name):
    """Reject names that cannot be used as a record file name."""
    if not name:
        raise InvalidNameError(name, "name cannot be empty")
    if "/" in name or "\\" in name or os.sep in name:
        raise InvalidNameError(name, "name cannot contain path separators")
    if name.startswith("."):
        raise InvalidNameError(name, "name cannot start with '.'")
    if "\x00" in name:
        raise InvalidNameError(name, "name cannot contain NUL")


def _decode_hex(doc: dict, name: str, field: str, size: Optional[int] = None) -> bytes:
    value = _text(doc, name, field)
    try:
        raw = binascii.unhexlify(value)
    except ValueError as e:
        raise CorruptRecordError(name, field, f"invalid hex ({e})") from e
    if size is not None and len(raw) != size:
        raise CorruptRecordError(name, field, f"expected {size} bytes, got {len(raw)}")
    return raw


def _decode_ciphertext(doc: dict, name: str, field: str) -> bytes:
    raw = _decode_hex(doc, name, field)
    if len(raw) < TAG_SIZE:
        raise CorruptRecordError(name, field, f"shorter than the {TAG_SIZE}-byte tag ({len(raw)} bytes)")
    return raw


def _text(doc: dict, name: str, field: str) -> str:
    if field not in doc:
        raise CorruptRecordError(name, field, "missing field")
    value = doc[field]
    if not isinstance(value, str):
        raise CorruptRecordError(name, field, f"expected string, got {type(value).__name__}")
    return value


class JsonStore:
    """File-per-record store rooted at a vault directory."""

    def __init__(self, root):
        self.root = Path(root)

    @property
    def master_path(self) -> Path:
        return self.root / MASTER_FILE

    @property
    def destinations_dir(self) -> Path:
        return self.root / DESTINATIONS_DIR

    def _record_path(self, name: str) -> Path:
        validate_name(name)
        return self.destinations_dir / f"{name}{RECORD_SUFFIX}"

    # ------------------------------------------------------------------
    # Low-level file access
    # ------------------------------------------------------------------

    def _write_json(self, path: Path, doc: Dict[str, str], overwrite: bool = True) -> None:
        """Atomically write doc to path as JSON.

        With overwrite=False the temp file is hard-linked into place, which
        raises FileExistsError instead of replacing an existing file.
        """
        ensure_dir(path.parent)
        fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=".", suffix=".tmp")
        try:
            with os.fdopen(fd, "w") as f:
                json.dump(doc, f, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.chmod(tmp, FILE_MODE)
            if overwrite:
                os.replace(tmp, path)
            else:
                os.link(tmp, path)
                os.unlink(tmp)
        except BaseException:
            try:
                os.unlink(tmp)
            except FileNotFoundError:
                pass
            raise
        logger.debug("wrote %s", path)

    def _read_json(self, path: Path, name: str) -> dict:
        try:
            with open(path, encoding="utf-8") as f:
                doc = json.load(f)
        except FileNotFoundError:
            raise
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise CorruptRecordError(name, None, f"invalid JSON ({e})") from e
        except OSError as e:
            raise CorruptRecordError(name, None, f"unreadable ({e})") from e
        if not isinstance(doc, dict):
            raise CorruptRecordError(name, None, "expected a JSON object")
        return doc

    # ------------------------------------------------------------------
    # Master credential
    # ------------------------------------------------------------------

    def master_exists(self) -> bool:
        return self.master_path.is_file()

    def load_master(self) -> MasterCredential:
        try:
            doc = self._read_json(self.master_path, MASTER_NAME)
        except FileNotFoundError as e:
            raise NotInitializedError() from e
        return MasterCredential(
            salt=_decode_hex(doc, MASTER_NAME, "salt", SALT_SIZE),
            password_hash=_decode_hex(doc, MASTER_NAME, "password_hash", KEY_SIZE),
        )

    def store_master(self, master: MasterCredential) -> None:
        """Persist the master credential. Never replaces an existing one."""
        if self.master_exists():
            raise AlreadyInitializedError()
        try:
            self._write_json(self.master_path, {
                "salt": master.salt.hex(),
                "password_hash": master.password_hash.hex(),
            }, overwrite=False)
        except FileExistsError as e:
            raise AlreadyInitializedError() from e

    # ------------------------------------------------------------------
    # Destinations
    # ------------------------------------------------------------------

    def exists(self, name: str) -> bool:
        return self._record_path(name).is_file()

    def load(self, name: str) -> DestinationRecord:
        path = self._record_path(name)
        try:
            doc = self._read_json(path, name)
        except FileNotFoundError as e:
            raise NotFoundError(name) from e
        return DestinationRecord(
            name=name,
            host=_text(doc, name, "host"),
            port=_text(doc, name, "port"),
            user=_text(doc, name, "user"),
            encrypted_password=_decode_ciphertext(doc, name, "encrypted_password"),
            nonce=_decode_hex(doc, name, "nonce", NONCE_SIZE),
            salt=_decode_hex(doc, name, "salt", SALT_SIZE),
        )

    def store(self, name: str, record: DestinationRecord) -> None:
        self._write_json(self._record_path(name), {
            "host": record.host,
            "port": record.port,
            "user": record.user,
            "encrypted_password": record.encrypted_password.hex(),
            "nonce": record.nonce.hex(),
            "salt": record.salt.hex(),
        })

    def list(self) -> Set[str]:
        """Return the names of all stored destinations."""
        if not self.destinations_dir.is_dir():
            return set()
        return {
            entry.name[:-len(RECORD_SUFFIX)]
            for entry in self.destinations_dir.iterdir()
            if entry.is_file()
            and entry.name.endswith(RECORD_SUFFIX)
            and not entry.name.startswith(".")
        }

    def delete(self, name: str) -> None:
        path = self._record_path(name)
        try:
            path.unlink()
        except FileNotFoundError as e:
            raise NotFoundError(name) from e
        logger.debug("deleted %s", path)
