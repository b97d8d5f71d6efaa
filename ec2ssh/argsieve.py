"""
Single pass argument sieve.

Separates our own options from options that must be handed over verbatim
to ssh / scp / sftp. Unlike argparse.parse_known_args() the sieve keeps
the exact token shape of unknown options (clusters, attached values and
--long=value forms) and knows which unknown short options swallow the
following token.
"""

import argparse
import logging

from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from .common import UsageError

logger = logging.getLogger("ec2ssh.argsieve")


class SiftError(UsageError):
    """Malformed option or option value"""


class Flag:
    """
    Description of one of our own options.

    type=None makes a boolean switch, type=str a plain string option and
    any other callable is used as a decoder of the option text. Decoders
    should raise ValueError on bad input.
    """

    def __init__(
        self,
        dest: str,
        short: Optional[str] = None,
        long: Optional[str] = None,
        type: Optional[Callable[[str], Any]] = None,
        default: Any = None,
    ) -> None:
        if not short and not long:
            raise ValueError(f"flag {dest} needs a short or a long name")
        if short and len(short) != 1:
            raise ValueError(f"short name of flag {dest} must be a single character")
        self.dest = dest
        self.short = short
        self.long = long
        self.type = type
        if default is None and type is None:
            default = False
        self.default = default

    @property
    def takes_value(self) -> bool:
        return self.type is not None

    @property
    def display_name(self) -> str:
        return f"--{self.long}" if self.long else f"-{self.short}"

    def decode(self, value: str) -> Any:
        if self.type is str:
            return value
        if value == "":
            raise SiftError(f"empty value for {self.display_name}")
        try:
            return self.type(value)
        except ValueError as e:
            raise SiftError(f"invalid value for {self.display_name}: {e}") from e


class Sieve:
    def __init__(self, flags: Iterable[Flag], passthrough_with_arg: Optional[Iterable[str]] = None) -> None:
        self.flags = list(flags)
        self.passthrough = set(passthrough_with_arg or [])
        self._short: Dict[str, Flag] = {}
        self._long: Dict[str, Flag] = {}
        for flag in self.flags:
            if flag.short:
                self._short[flag.short] = flag
            if flag.long:
                self._long[flag.long] = flag

    def _defaults(self) -> argparse.Namespace:
        namespace = argparse.Namespace()
        for flag in self.flags:
            setattr(namespace, flag.dest, flag.default)
        return namespace

    def _bind(self, namespace: argparse.Namespace, flag: Flag, value: Optional[str] = None) -> None:
        if flag.takes_value:
            # Last occurrence wins
            setattr(namespace, flag.dest, flag.decode(value))
        else:
            setattr(namespace, flag.dest, True)

    def sift(self, args: List[str], strict: bool = False) -> Tuple[argparse.Namespace, List[str], List[str]]:
        """
        Sift args into (bound options, remaining unknown options, positionals).

        Everything after "--" is positional, the "--" itself is dropped.
        With strict=True unknown options raise SiftError instead of
        being collected.
        """
        namespace = self._defaults()
        remaining: List[str] = []
        positional: List[str] = []

        tokens = iter(args)

        def _next() -> Optional[str]:
            return next(tokens, None)

        for arg in tokens:
            if arg == "--":
                positional.extend(tokens)
                break

            if arg.startswith("--"):
                self._sift_long(arg, _next, namespace, remaining, strict)
            elif arg.startswith("-") and len(arg) > 1:
                self._sift_short(arg, _next, namespace, remaining, strict)
            else:
                positional.append(arg)

        logger.debug("Sifted %s into remaining=%s positional=%s", args, remaining, positional)
        return namespace, remaining, positional

    def parse(self, args: List[str]) -> Tuple[argparse.Namespace, List[str]]:
        """
        Strict variant of sift() for commands that wrap nothing.
        """
        namespace, _, positional = self.sift(args, strict=True)
        return namespace, positional

    def _sift_long(
        self,
        arg: str,
        _next: Callable[[], Optional[str]],
        namespace: argparse.Namespace,
        remaining: List[str],
        strict: bool,
    ) -> None:
        name, equals, value = arg[2:].partition("=")
        flag = self._long.get(name)

        if flag is None:
            if strict:
                raise SiftError(f"unknown option --{name}")
            remaining.append(arg)
            if not equals and f"--{name}" in self.passthrough:
                value = _next()
                if value is not None:
                    remaining.append(value)
            return

        if not flag.takes_value:
            if equals:
                raise SiftError(f"option --{name} does not take a value")
            self._bind(namespace, flag)
            return

        if not equals:
            value = _next()
            if value is None:
                raise SiftError(f"missing value for --{name}")
        self._bind(namespace, flag, value)

    def _sift_short(
        self,
        arg: str,
        _next: Callable[[], Optional[str]],
        namespace: argparse.Namespace,
        remaining: List[str],
        strict: bool,
    ) -> None:
        cluster = arg[1:]

        for idx, char in enumerate(cluster):
            tail = cluster[idx + 1 :]
            flag = self._short.get(char)

            if flag is None:
                if strict:
                    raise SiftError(f"unknown option -{char}")
                if f"-{char}" not in self.passthrough:
                    # Unknown switch, keep scanning the cluster
                    remaining.append(f"-{char}")
                    continue

                # The rest of the cluster is the value of the unknown option
                if tail:
                    remaining.append(f"-{char}{tail}")
                    return
                remaining.append(f"-{char}")
                value = _next()
                if value is not None:
                    remaining.append(value)
                return

            if not flag.takes_value:
                self._bind(namespace, flag)
                continue

            # The rest of the cluster is the value
            if tail:
                self._bind(namespace, flag, tail)
                return

            value = _next()
            if value is None:
                raise SiftError(f"missing value for -{char}")
            self._bind(namespace, flag, value)
            return
