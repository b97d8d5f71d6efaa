import os
import logging
import pathlib
import subprocess

from typing import Optional, Tuple

from .common import EC2SSHError

logger = logging.getLogger("ec2ssh.sshkey")

SSH_KEY_TYPE = "ed25519"


class KeygenError(EC2SSHError):
    """ssh-keygen failed"""


def _run_keygen(args: list, stderr: Optional[int] = subprocess.PIPE) -> subprocess.CompletedProcess:
    command = ["ssh-keygen"] + args
    logger.debug("Running: %s", command)
    try:
        return subprocess.run(command, stdout=subprocess.PIPE, stderr=stderr, check=False)
    except FileNotFoundError as e:
        raise KeygenError("ssh-keygen not installed") from e


def generate_keypair(tmp_dir: str) -> Tuple[str, str]:
    """
    Generate a passphrase-less ed25519 keypair in tmp_dir.

    Returns the private key path and the single line public key.
    """
    private_key_path = os.path.join(tmp_dir, f"id_{SSH_KEY_TYPE}")

    cp = _run_keygen(["-q", "-t", SSH_KEY_TYPE, "-f", private_key_path, "-N", ""])
    if cp.returncode != 0:
        raise KeygenError(f"failed to generate keypair: {cp.stderr.decode('utf-8').strip()}")

    # Owner read/write only
    os.chmod(private_key_path, 0o600)

    public_key = pathlib.Path(private_key_path + ".pub").read_text().strip()
    logger.debug("Generated ephemeral key %s", private_key_path)
    return private_key_path, public_key


def get_public_key(private_key_path: str) -> str:
    """
    Get the public key matching an existing private key.

    The .pub file next to the key is used when present, otherwise
    the public key is derived with ssh-keygen -y.
    """
    key_path = pathlib.Path(private_key_path).expanduser()

    try:
        for line in pathlib.Path(str(key_path) + ".pub").read_text().split("\n"):
            if line.startswith(("ssh-", "ecdsa-", "sk-")):
                logger.debug("Found a matching SSH public key in %s.pub", key_path)
                return line.strip()
    except (FileNotFoundError, PermissionError) as ex:
        logger.debug("Could not read the public key: %s", ex)

    if not key_path.exists():
        raise FileNotFoundError(f"identity file {private_key_path} not found")

    # Leave stderr alone, ssh-keygen may ask for a passphrase
    cp = _run_keygen(["-y", "-f", str(key_path)], stderr=None)
    if cp.returncode != 0:
        raise KeygenError(f"failed to get public key from {private_key_path}")

    logger.debug("Extracted the public key from: %s", key_path)
    return cp.stdout.decode("utf-8").split("\n")[0].strip()
