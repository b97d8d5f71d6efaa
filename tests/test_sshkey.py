import os
import shutil
import stat
import subprocess
from unittest.mock import patch

import pytest

from ec2ssh.sshkey import KeygenError, generate_keypair, get_public_key

needs_keygen = pytest.mark.skipif(shutil.which("ssh-keygen") is None, reason="ssh-keygen not installed")


@needs_keygen
def test_generate_keypair(tmp_path):
    private_key_path, public_key = generate_keypair(str(tmp_path))

    assert private_key_path == str(tmp_path / "id_ed25519")
    assert public_key.startswith("ssh-ed25519 ")
    assert "\n" not in public_key
    assert stat.S_IMODE(os.stat(private_key_path).st_mode) == 0o600


@needs_keygen
def test_get_public_key_derived_without_pub_file(tmp_path):
    private_key_path, public_key = generate_keypair(str(tmp_path))
    os.unlink(private_key_path + ".pub")

    # ssh-keygen -y omits the comment
    assert public_key.startswith(get_public_key(private_key_path))


def test_get_public_key_prefers_pub_file(tmp_path):
    key = tmp_path / "id_test"
    key.write_text("not really a key")
    (tmp_path / "id_test.pub").write_text("ssh-ed25519 AAAAC3Nz user@host\n")

    with patch("ec2ssh.sshkey.subprocess.run") as run:
        assert get_public_key(str(key)) == "ssh-ed25519 AAAAC3Nz user@host"
        run.assert_not_called()


def test_get_public_key_missing_identity(tmp_path):
    with pytest.raises(FileNotFoundError, match="not found"):
        get_public_key(str(tmp_path / "nope"))


def test_get_public_key_keygen_fails(tmp_path):
    key = tmp_path / "id_test"
    key.write_text("garbage")

    failed = subprocess.CompletedProcess(args=[], returncode=255, stdout=b"", stderr=None)
    with patch("ec2ssh.sshkey.subprocess.run", return_value=failed):
        with pytest.raises(KeygenError, match="failed to get public key"):
            get_public_key(str(key))


def test_keygen_not_installed(tmp_path):
    with patch("ec2ssh.sshkey.subprocess.run", side_effect=FileNotFoundError()):
        with pytest.raises(KeygenError, match="not installed"):
            generate_keypair(str(tmp_path))
