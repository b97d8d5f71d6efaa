"""
Parsing of ssh / sftp / scp destinations.

Follows the OpenSSH rules: the login is split off at the last "@",
IPv6 addresses are bracketed when followed by a port or a path and
scp operands are told apart from local paths the way scp's colon() does.
"""

import logging

from typing import List, Tuple

from .common import TargetError

logger = logging.getLogger("ec2ssh.target")


def _split_user_rest(text: str) -> Tuple[str, str]:
    # OpenSSH uses strrchr() so the login itself may contain "@"
    user, at, rest = text.rpartition("@")
    if not at:
        return "", text
    return user, rest


def _split_host_rest(text: str) -> Tuple[str, str, bool]:
    """
    Split "host:rest" at the first colon, "[addr]:rest" at "]:".
    """
    if text.startswith("["):
        idx = text.find("]:")
        if idx == -1:
            return text, "", False
        return text[: idx + 1], text[idx + 2 :], True
    host, colon, rest = text.partition(":")
    return host, rest, bool(colon)


def _split_host_port(text: str) -> Tuple[str, str]:
    """
    Split "host:port" at the last colon outside of square brackets.
    """
    idx = text.rfind(":")
    if idx == -1 or text.rfind("]") > idx:
        return text, ""
    return text[:idx], text[idx + 1 :]


def _strip_brackets(host: str) -> Tuple[str, bool]:
    if host.startswith("[") and host.endswith("]"):
        return host[1:-1], True
    return host, False


class Target:
    """
    Common base of all destination forms.

    The host is kept without IPv6 brackets, "bracketed" records whether
    they have to be put back when the target is turned into a string.
    """

    scheme = ""

    def __init__(self, user: str, host: str, port: str = "", path: str = "", bracketed: bool = False) -> None:
        if not host:
            raise TargetError("missing hostname")
        self.user = user
        self.host = host
        self.port = port
        self.path = path
        self.bracketed = bracketed

    @property
    def login(self) -> str:
        return self.user

    @property
    def is_url(self) -> bool:
        return bool(self.scheme)

    def set_host(self, host: str) -> None:
        if not host:
            raise ValueError("empty host")
        self.host = host
        self.bracketed = False

    def set_host_ipv6(self, host: str) -> None:
        if not host:
            raise ValueError("empty host")
        self.host = host
        self.bracketed = True

    def _userhost(self) -> str:
        text = f"{self.user}@" if self.user else ""
        if self.bracketed:
            return f"{text}[{self.host}]"
        return text + self.host

    def _url_prefix(self) -> str:
        text = f"{self.scheme}://{self._userhost()}"
        if self.port:
            text += f":{self.port}"
        return text

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Target):
            return NotImplemented
        return type(self) is type(other) and vars(self) == vars(other)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({str(self)!r})"


# ---------------------------------------------------------


class SSHTarget(Target):
    """[user@]host"""

    def set_host_ipv6(self, host: str) -> None:
        # ssh takes a bare IPv6 address as the destination
        self.set_host(host)

    def __str__(self) -> str:
        return self._userhost()


class SSHURLTarget(Target):
    """ssh://[user@]host[:port]"""

    scheme = "ssh"

    def __str__(self) -> str:
        return self._url_prefix()


def parse_ssh_target(text: str) -> Target:
    if text.startswith("ssh://"):
        user, rest = _split_user_rest(text[len("ssh://") :])
        host, port = _split_host_port(rest)
        host, bracketed = _strip_brackets(host)
        return SSHURLTarget(user, host, port=port, bracketed=bracketed)
    user, host = _split_user_rest(text)
    return SSHTarget(user, host)


# ---------------------------------------------------------


class SFTPTarget(Target):
    """[user@]host[:path]"""

    def __str__(self) -> str:
        text = self._userhost()
        if self.path:
            text += f":{self.path}"
        return text


class SFTPURLTarget(Target):
    """sftp://[user@]host[:port][/path]"""

    scheme = "sftp"

    def __str__(self) -> str:
        text = self._url_prefix()
        if self.path:
            text += f"/{self.path}"
        return text


def _parse_url(text: str, scheme: str) -> Tuple[str, str, str, str, bool]:
    hostpart, _, path = text[len(scheme) + 3 :].partition("/")
    user, rest = _split_user_rest(hostpart)
    host, port = _split_host_port(rest)
    host, bracketed = _strip_brackets(host)
    return user, host, port, path, bracketed


def parse_sftp_target(text: str) -> Target:
    if text.startswith("sftp://"):
        user, host, port, path, bracketed = _parse_url(text, "sftp")
        return SFTPURLTarget(user, host, port=port, path=path, bracketed=bracketed)
    user, rest = _split_user_rest(text)
    host, path, _ = _split_host_rest(rest)
    host, bracketed = _strip_brackets(host)
    return SFTPTarget(user, host, path=path, bracketed=bracketed)


# ---------------------------------------------------------


class SCPTarget(Target):
    """[user@]host:path"""

    def __str__(self) -> str:
        return f"{self._userhost()}:{self.path}"


class SCPURLTarget(Target):
    """scp://[user@]host[:port]/path"""

    scheme = "scp"

    def __str__(self) -> str:
        return f"{self._url_prefix()}/{self.path}"


def parse_scp_target(text: str) -> Target:
    if text.startswith("scp://"):
        user, host, port, path, bracketed = _parse_url(text, "scp")
        return SCPURLTarget(user, host, port=port, path=path, bracketed=bracketed)
    user, rest = _split_user_rest(text)
    host, path, found = _split_host_rest(rest)
    if not found:
        raise TargetError(f"scp target requires a colon: {text}")
    host, bracketed = _strip_brackets(host)
    return SCPTarget(user, host, path=path, bracketed=bracketed)


def is_local_path(text: str) -> bool:
    """
    Tell whether an scp operand is a local path, same as OpenSSH's colon().

    A leading ":" is part of a filename, a "/" before any unbracketed ":"
    makes a path and inside "[...]" only "]:" separates host and path.
    """
    if not text or text[0] == ":":
        return True

    in_brackets = text[0] == "["
    for idx, char in enumerate(text):
        following = text[idx + 1 : idx + 2]
        if char == "@" and following == "[":
            in_brackets = True
        elif char == "]" and in_brackets and following == ":":
            return False
        elif char == ":" and not in_brackets:
            return False
        elif char == "/":
            return True

    return True


class SCPOperands:
    def __init__(self, operands: List[str], remote: Target, remote_index: int) -> None:
        self.operands = operands
        self.remote = remote
        self.remote_index = remote_index

    @property
    def is_upload(self) -> bool:
        return self.remote_index == 1

    def to_args(self) -> List[str]:
        args = list(self.operands)
        args[self.remote_index] = str(self.remote)
        return args


def parse_scp_operands(operands: List[str]) -> SCPOperands:
    """
    Validate a source / target pair and parse the remote one.
    """
    if len(operands) != 2:
        raise TargetError(f"scp needs exactly two operands, got {len(operands)}")

    remote_flags = [op.startswith("scp://") or not is_local_path(op) for op in operands]
    if not any(remote_flags):
        raise TargetError("one of the scp operands must be remote")
    if all(remote_flags):
        raise TargetError("only one of the scp operands may be remote")

    remote_index = remote_flags.index(True)
    remote = parse_scp_target(operands[remote_index])
    logger.debug("Remote scp operand #%d: %r", remote_index, remote)
    return SCPOperands(list(operands), remote, remote_index)

