import pytest

from ec2ssh.common import TargetError
from ec2ssh.target import (
    SCPTarget,
    SCPURLTarget,
    SFTPTarget,
    SFTPURLTarget,
    SSHTarget,
    SSHURLTarget,
    is_local_path,
    parse_scp_operands,
    parse_scp_target,
    parse_sftp_target,
    parse_ssh_target,
)

# ssh


@pytest.mark.parametrize(
    "text, expected",
    [
        ("host", SSHTarget("", "host")),
        ("user@host", SSHTarget("user", "host")),
        ("user@domain@host", SSHTarget("user@domain", "host")),
        ("2001:db8::1", SSHTarget("", "2001:db8::1")),
        ("ssh://host", SSHURLTarget("", "host")),
        ("ssh://user@host:2222", SSHURLTarget("user", "host", port="2222")),
        ("ssh://[2001:db8::1]:22", SSHURLTarget("", "2001:db8::1", port="22", bracketed=True)),
        ("ssh://[2001:db8::1]", SSHURLTarget("", "2001:db8::1", bracketed=True)),
    ],
)
def test_parse_ssh_target(text, expected):
    target = parse_ssh_target(text)
    assert target == expected
    assert str(target) == text


@pytest.mark.parametrize("text", ["", "user@", "ssh://", "ssh://user@:22"])
def test_parse_ssh_target_missing_host(text):
    with pytest.raises(TargetError, match="missing hostname"):
        parse_ssh_target(text)


def test_ssh_target_set_host():
    target = parse_ssh_target("admin@app-server")
    target.set_host("54.1.2.3")
    assert str(target) == "admin@54.1.2.3"
    assert target.login == "admin"
    assert not target.is_url


def test_ssh_target_ipv6_stays_bare():
    target = parse_ssh_target("admin@app-server")
    target.set_host_ipv6("2001:db8::1")
    assert str(target) == "admin@2001:db8::1"


def test_ssh_url_target_ipv6_is_bracketed():
    target = parse_ssh_target("ssh://admin@app-server:2222")
    target.set_host_ipv6("2001:db8::1")
    assert str(target) == "ssh://admin@[2001:db8::1]:2222"
    assert target.is_url


def test_set_host_rejects_empty():
    target = parse_ssh_target("host")
    with pytest.raises(ValueError):
        target.set_host("")


# sftp


@pytest.mark.parametrize(
    "text, expected",
    [
        ("host", SFTPTarget("", "host")),
        ("user@host:/var/log", SFTPTarget("user", "host", path="/var/log")),
        ("host:", SFTPTarget("", "host")),
        ("[2001:db8::1]:dir", SFTPTarget("", "2001:db8::1", path="dir", bracketed=True)),
        ("sftp://user@host:2222/var/log", SFTPURLTarget("user", "host", port="2222", path="var/log")),
        ("sftp://host", SFTPURLTarget("", "host")),
    ],
)
def test_parse_sftp_target(text, expected):
    assert parse_sftp_target(text) == expected


def test_sftp_target_str():
    assert str(parse_sftp_target("user@host:/var/log")) == "user@host:/var/log"
    assert str(parse_sftp_target("sftp://user@host:2222/var/log")) == "sftp://user@host:2222/var/log"


def test_sftp_target_ipv6_is_bracketed():
    target = parse_sftp_target("user@app:/tmp")
    target.set_host_ipv6("2001:db8::1")
    assert str(target) == "user@[2001:db8::1]:/tmp"


# scp


@pytest.mark.parametrize(
    "text, expected",
    [
        ("host:", SCPTarget("", "host")),
        ("admin@app-server:/tmp/", SCPTarget("admin", "app-server", path="/tmp/")),
        ("host:file:with:colons", SCPTarget("", "host", path="file:with:colons")),
        ("user@[2001:db8::1]:/tmp", SCPTarget("user", "2001:db8::1", path="/tmp", bracketed=True)),
        ("scp://user@host:2222/tmp/x", SCPURLTarget("user", "host", port="2222", path="tmp/x")),
    ],
)
def test_parse_scp_target(text, expected):
    target = parse_scp_target(text)
    assert target == expected
    assert str(target) == text


def test_parse_scp_target_needs_colon():
    with pytest.raises(TargetError):
        parse_scp_target("user@host")


@pytest.mark.parametrize(
    "text, local",
    [
        ("file.txt", True),
        ("./dir/file:x", True),
        ("/abs:path", True),
        (":leading-colon", True),
        ("host:path", False),
        ("user@host:", False),
        ("[::1]:/tmp", False),
        ("user@[::1]:/tmp", False),
        ("[::1]", True),
    ],
)
def test_is_local_path(text, local):
    assert is_local_path(text) is local


def test_scp_operands_upload():
    operands = parse_scp_operands(["./file.txt", "admin@app-server:/tmp/"])
    assert operands.is_upload
    assert operands.remote == SCPTarget("admin", "app-server", path="/tmp/")
    operands.remote.set_host("54.1.2.3")
    assert operands.to_args() == ["./file.txt", "admin@54.1.2.3:/tmp/"]


def test_scp_operands_download_url():
    operands = parse_scp_operands(["scp://host/etc/motd", "."])
    assert not operands.is_upload
    assert operands.remote_index == 0
    assert operands.to_args() == ["scp://host/etc/motd", "."]


@pytest.mark.parametrize(
    "operands, message",
    [
        ([], "exactly two"),
        (["a:b"], "exactly two"),
        (["a", "b", "c:d"], "exactly two"),
        (["a", "b"], "must be remote"),
        (["a:x", "b:y"], "only one"),
    ],
)
def test_scp_operands_errors(operands, message):
    with pytest.raises(TargetError, match=message):
        parse_scp_operands(operands)
