#!/usr/bin/env python3

# Open SSH connections to EC2 instances
#
# Resolves the destination to a running instance, pushes an ephemeral
# key through EC2 Instance Connect and runs 'ssh' with the right
# parameters, optionally through an EICE or SSM tunnel.

import logging

from typing import List

from .argsieve import Flag
from .session import BaseSSHSession
from .target import parse_ssh_target

logger = logging.getLogger("ec2ssh.ssh")

# ssh short options that take an argument, -i -l and -p are ours
SSH_PASSTHROUGH_WITH_ARG = [
    "-B", "-b", "-c", "-D", "-E", "-e", "-F", "-I", "-J",
    "-L", "-m", "-O", "-o", "-P", "-R", "-S", "-W", "-w",
]  # fmt: skip


class SSHSession(BaseSSHSession):
    command = "ssh"
    passthrough_with_arg = SSH_PASSTHROUGH_WITH_ARG
    extra_flags = [
        Flag("login", short="l", type=str),
        Flag("port", short="p", type=str),
    ]
    port_flag = "-p"

    def parse_positional(self, positional: List[str]) -> None:
        self.command_args: List[str] = []
        if not positional:
            return
        self.target = parse_ssh_target(positional[0])
        self.command_args = positional[1:]

    @property
    def login_flag(self) -> str:
        return self.options.login or ""

    def target_args(self) -> List[str]:
        args = [str(self.target)]
        if self.command_args:
            args.append("--")
            args.extend(self.command_args)
        return args
