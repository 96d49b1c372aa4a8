"""sshpass resolution and SSH session launch.

`tele go` hands the decrypted password to sshpass through the SSHPASS
environment variable and replaces the current process with
`sshpass -e ssh ...`. If no sshpass binary is available, one is built from
the upstream source tarball into <vault dir>/bin.
"""

import logging
import os
import shutil
import subprocess
import sys
import tarfile
import tempfile
from pathlib import Path

import httpx

from .config import SSHPASS_ENV, ensure_dir
from .errors import LauncherError

logger = logging.getLogger(__name__)

SSHPASS_URL = "https://sourceforge.net/projects/sshpass/files/sshpass/1.10/sshpass-1.10.tar.gz/download"
DOWNLOAD_TIMEOUT = 60
C_COMPILERS = ("cc", "gcc", "clang")


def bin_dir(vault_dir):
    """Return the managed bin directory inside the vault dir."""
    return ensure_dir(Path(vault_dir) / "bin")


def ensure(vault_dir):
    """Return the path to a working sshpass binary.

    Checks TELE_SSHPASS, then PATH, then the managed bin dir, and builds
    from source as a last resort.
    """
    explicit = os.environ.get(SSHPASS_ENV)
    if explicit:
        if not os.access(explicit, os.X_OK):
            raise LauncherError(f"{SSHPASS_ENV}={explicit} is not an executable file")
        return explicit

    found = shutil.which("sshpass")
    if found:
        logger.debug("using sshpass from PATH: %s", found)
        return found

    managed = bin_dir(vault_dir) / "sshpass"
    if managed.is_file():
        logger.debug("using managed sshpass: %s", managed)
        return str(managed)

    print("sshpass not found, installing automatically...", file=sys.stderr)
    install_from_source(managed.parent)
    if not managed.is_file():
        raise LauncherError("sshpass binary not found after install")
    print("sshpass installed successfully.", file=sys.stderr)
    return str(managed)


def find_cc():
    for name in C_COMPILERS:
        path = shutil.which(name)
        if path:
            return path
    return None


def install_from_source(target_dir):
    """Download, build and copy sshpass into target_dir."""
    if not find_cc():
        if sys.platform == "darwin":
            hint = "install Xcode Command Line Tools: xcode-select --install"
        else:
            hint = "install gcc or clang via your package manager"
        raise LauncherError(f"no C compiler found: {hint}")

    with tempfile.TemporaryDirectory(prefix="tele-sshpass-") as tmpdir:
        tmp = Path(tmpdir)
        tarball = tmp / "sshpass.tar.gz"
        try:
            download(SSHPASS_URL, tarball)
        except (httpx.HTTPError, OSError) as e:
            raise LauncherError(f"downloading sshpass: {e}") from e

        try:
            src_dir = extract_tarball(tarball, tmp)
        except (tarfile.TarError, OSError) as e:
            raise LauncherError(f"extracting sshpass: {e}") from e

        for step in (["./configure", f"--prefix={tmp / 'out'}"], ["make"]):
            logger.debug("running %s in %s", step[0], src_dir)
            proc = subprocess.run(step, cwd=src_dir, capture_output=True)
            if proc.returncode != 0:
                raise LauncherError(f"{step[0]} failed with exit code {proc.returncode}")

        dst = Path(target_dir) / "sshpass"
        shutil.copyfile(src_dir / "sshpass", dst)
        os.chmod(dst, 0o755)


def download(url, dest):
    logger.debug("downloading %s", url)
    with httpx.stream("GET", url, follow_redirects=True, timeout=DOWNLOAD_TIMEOUT) as resp:
        resp.raise_for_status()
        with open(dest, "wb") as f:
            for chunk in resp.iter_bytes():
                f.write(chunk)


def extract_tarball(tarball, dest):
    """Extract tarball into dest and return its top-level directory.

    Members that would land outside dest, and anything that is not a
    regular file or directory, are skipped.
    """
    dest = Path(dest).resolve()
    top = None
    with tarfile.open(tarball, "r:gz") as tar:
        for member in tar.getmembers():
            target = (dest / member.name).resolve()
            if dest not in target.parents:
                continue
            if not (member.isdir() or member.isfile()):
                continue
            if top is None:
                top = dest / Path(member.name).parts[0]
            if member.isdir():
                target.mkdir(parents=True, exist_ok=True)
                continue
            target.parent.mkdir(parents=True, exist_ok=True)
            with tar.extractfile(member) as src, open(target, "wb") as out:
                shutil.copyfileobj(src, out)
            os.chmod(target, member.mode & 0o755)
    if top is None:
        raise LauncherError("sshpass archive is empty")
    return top


def build_command(conn):
    """Build argv and environment for an sshpass-wrapped ssh session.

    The password travels in SSHPASS, never on the command line.
    """
    argv = [
        "sshpass", "-e",
        "ssh",
        "-o", "StrictHostKeyChecking=accept-new",
        "-p", conn.port,
        f"{conn.user}@{conn.host}",
    ]
    env = os.environ.copy()
    env["SSHPASS"] = conn.password
    return argv, env


def launch(conn, vault_dir):
    """Replace the current process with an ssh session to conn."""
    sshpass_path = ensure(vault_dir)
    argv, env = build_command(conn)
    logger.debug("exec %s %s", sshpass_path, " ".join(argv[1:]))
    try:
        os.execve(sshpass_path, argv, env)
    except OSError as e:
        raise LauncherError(f"executing ssh: {e}") from e
