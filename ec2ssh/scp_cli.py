#!/usr/bin/env python3

# Copy files to and from EC2 instances with 'scp'

import logging

from typing import List

from .argsieve import Flag
from .common import UsageError
from .session import BaseSSHSession
from .target import SCPOperands, parse_scp_operands

logger = logging.getLogger("ec2ssh.scp")

# scp short options that take an argument, -i and -P are ours
SCP_PASSTHROUGH_WITH_ARG = ["-c", "-F", "-J", "-l", "-o", "-S"]


class SCPSession(BaseSSHSession):
    command = "scp"
    passthrough_with_arg = SCP_PASSTHROUGH_WITH_ARG
    extra_flags = [
        Flag("port", short="P", type=str),
    ]
    port_flag = "-P"

    def parse_positional(self, positional: List[str]) -> None:
        if not positional:
            raise UsageError("missing source and target")
        self.operands: SCPOperands = parse_scp_operands(positional)
        self.target = self.operands.remote
        logger.debug("%s remote %s", "Upload to" if self.operands.is_upload else "Download from", self.target)

    def target_args(self) -> List[str]:
        return self.operands.to_args()
