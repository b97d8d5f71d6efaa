#!/usr/bin/env python3

# Internal ProxyCommand helpers
#
# 'ssh' runs us again as its ProxyCommand with --eice-tunnel or
# --ssm-tunnel. The parent session passes everything we need through
# the environment so nothing has to be looked up again.

import os
import logging

from typing import List, Tuple

from .argsieve import Flag, Sieve
from .common import EC2SSHError, UsageError, verify_plugin_version
from .session import TUNNEL_CONFIG_ENV, TUNNEL_URI_ENV
from . import websocket_tunnel

logger = logging.getLogger("ec2ssh.tunnel")

TUNNEL_FLAGS = [Flag("debug", long="debug")]


def parse_tunnel_args(argv: List[str]) -> bool:
    options, positional = Sieve(TUNNEL_FLAGS).parse(argv)
    if positional:
        raise UsageError(f"unexpected argument: {positional[0]}")
    return options.debug


def parse_tunnel_config(config: str) -> Tuple[str, int, str, str]:
    """
    Split "instance-id:port:region:profile", the port defaults to 22.
    """
    parts = config.split(":", 3) + ["", "", ""]
    instance_id, port_str, region, profile = parts[:4]
    if not instance_id:
        raise UsageError(f"{TUNNEL_CONFIG_ENV} does not contain an instance id")
    try:
        port = int(port_str)
    except ValueError:
        port = 22
    return instance_id, port, region, profile


class EICETunnel:
    def __init__(self, argv: List[str]) -> None:
        self.debug = parse_tunnel_args(argv)
        self.uri = os.environ.get(TUNNEL_URI_ENV, "")
        if not self.uri:
            raise UsageError(f"{TUNNEL_URI_ENV} is not set")

    def run(self) -> None:
        logger.debug("Opening EICE tunnel")
        websocket_tunnel.run(self.uri)


class SSMTunnel:
    def __init__(self, argv: List[str]) -> None:
        self.debug = parse_tunnel_args(argv)
        config = os.environ.get(TUNNEL_CONFIG_ENV, "")
        if not config:
            raise UsageError(f"{TUNNEL_CONFIG_ENV} is not set")
        self.instance_id, self.port, self.region, self.profile = parse_tunnel_config(config)

    def exec_args(self) -> List[str]:
        exec_args = ["aws"]
        if self.profile:
            exec_args += ["--profile", self.profile]
        if self.region:
            exec_args += ["--region", self.region]
        exec_args += [
            "ssm",
            "start-session",
            "--target",
            self.instance_id,
            "--document-name",
            "AWS-StartSSHSession",
            "--parameters",
            f"portNumber={self.port}",
        ]
        return exec_args

    def run(self) -> None:
        if not verify_plugin_version("1.1.23", logger):
            raise EC2SSHError("session-manager-plugin is required for --use-ssm")

        exec_args = self.exec_args()
        logger.debug("Running: %s", exec_args)
        os.execvp(exec_args[0], exec_args)
