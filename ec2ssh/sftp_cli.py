#!/usr/bin/env python3

# Open SFTP sessions to EC2 instances

import logging

from typing import List

from .argsieve import Flag
from .session import BaseSSHSession
from .target import parse_sftp_target

logger = logging.getLogger("ec2ssh.sftp")

# sftp short options that take an argument, -i and -P are ours
SFTP_PASSTHROUGH_WITH_ARG = [
    "-B", "-b", "-c", "-D", "-F", "-J", "-l", "-o", "-R", "-S", "-s", "-X",
]  # fmt: skip


class SFTPSession(BaseSSHSession):
    command = "sftp"
    passthrough_with_arg = SFTP_PASSTHROUGH_WITH_ARG
    extra_flags = [
        Flag("port", short="P", type=str),
    ]
    port_flag = "-P"

    def parse_positional(self, positional: List[str]) -> None:
        if positional:
            self.target = parse_sftp_target(positional[0])

    def target_args(self) -> List[str]:
        return [str(self.target)]
