#!/usr/bin/env python3

# SSM Session Manager shell for EC2 instances
#
# Without a command this is a convenience wrapper around
# 'aws ssm start-session'. With a command the command is run through
# SSM RunCommand and its output and exit code are passed back.

import os
import re
import sys
import time
import shlex
import logging

from typing import List, Optional, Tuple

import botocore.exceptions

from .argsieve import Flag, Sieve
from .common import (
    EC2SSHError,
    RemoteCommandError,
    UsageError,
    create_session,
    verify_awscli_version,
    verify_plugin_version,
)
from .resolver import DstType, InstanceResolver
from .target import parse_ssh_target

logger = logging.getLogger("ec2ssh.ssm")

DEFAULT_TIMEOUT = 60.0
POLL_INTERVAL = 0.1
POLL_INTERVAL_MAX = 5.0

RUNNING_STATES = ["Pending", "InProgress", "Delayed"]

DURATION_RE = re.compile(r"(\d+(?:\.\d+)?)(ms|s|m|h)")
DURATION_UNITS = {"ms": 0.001, "s": 1, "m": 60, "h": 3600}


def parse_duration(text: str) -> float:
    """
    Parse "90", "90s", "1m30s", "2h" or "500ms" into seconds.
    """
    try:
        seconds = float(text)
    except ValueError:
        pos = 0
        seconds = 0.0
        for match in DURATION_RE.finditer(text):
            if match.start() != pos:
                break
            seconds += float(match.group(1)) * DURATION_UNITS[match.group(2)]
            pos = match.end()
        if pos == 0 or pos != len(text):
            raise ValueError(f"invalid duration: {text!r}")
    if not seconds > 0:
        raise ValueError(f"duration must be positive: {text!r}")
    return seconds


SSM_FLAGS = [
    Flag("region", long="region", type=str),
    Flag("profile", long="profile", type=str),
    Flag("dst_type", long="destination-type", type=DstType.from_text),
    Flag("timeout", long="timeout", type=parse_duration, default=DEFAULT_TIMEOUT),
    Flag("debug", long="debug"),
]


class SSMSession:
    def __init__(self, argv: List[str]) -> None:
        self.options, positional = Sieve(SSM_FLAGS).parse(argv)
        if not positional:
            raise UsageError("missing destination")

        # [user@]host is accepted, the user is not used by SSM
        self.destination = parse_ssh_target(positional[0]).host
        self.command_args = positional[1:]

    @property
    def debug(self) -> bool:
        return self.options.debug

    def create_clients(self) -> None:
        session = create_session(self.options.profile, self.options.region)
        self.resolver = InstanceResolver(self.options, session)
        self.ssm_client = session.client("ssm")

    def run(self) -> None:
        self.create_clients()

        instance = self.resolver.get_instance(self.destination, self.options.dst_type)
        instance_id = instance["InstanceId"]

        if self.command_args:
            logger.debug("Running command on instance %s", instance_id)
            stdout, stderr = self.run_command(instance_id, self.command_args)
            sys.stdout.write(stdout)
            sys.stdout.flush()
            sys.stderr.write(stderr)
            sys.stderr.flush()
            return

        logger.debug("Starting SSM session to instance %s", instance_id)
        self.start_session(instance_id)

    def start_session_args(self, instance_id: str) -> List[str]:
        exec_args = ["aws", "ssm", "start-session"]
        if self.options.profile:
            exec_args += ["--profile", self.options.profile]
        region = self.options.region or self.resolver.region
        if region:
            exec_args += ["--region", region]
        exec_args += ["--target", instance_id]
        return exec_args

    def start_session(self, instance_id: str) -> None:
        if not verify_plugin_version("1.1.23", logger) or not verify_awscli_version("1.16.12", logger):
            raise EC2SSHError("aws-cli with session-manager-plugin is required for SSM sessions")

        exec_args = self.start_session_args(instance_id)
        logger.debug("Running: %s", exec_args)
        os.execvp(exec_args[0], exec_args)

    def run_command(self, instance_id: str, command_args: List[str]) -> Tuple[str, str]:
        """
        Run a shell-quoted command through AWS-RunShellScript and wait.

        Returns the remote stdout and stderr. A failed command raises
        RemoteCommandError carrying the remote exit code.
        """
        command = " ".join(shlex.quote(arg) for arg in command_args)
        response = self.ssm_client.send_command(
            InstanceIds=[instance_id],
            DocumentName="AWS-RunShellScript",
            Parameters={"commands": [command]},
        )
        command_id = response["Command"]["CommandId"]
        logger.debug("Sent command %s: %s", command_id, command)

        return self.wait_for_completion(command_id, instance_id)

    def wait_for_completion(self, command_id: str, instance_id: str) -> Tuple[str, str]:
        deadline = time.monotonic() + self.options.timeout
        interval = POLL_INTERVAL

        while True:
            if time.monotonic() > deadline:
                raise EC2SSHError(f"timeout waiting for command {command_id} to complete")

            invocation = self._get_invocation(command_id, instance_id)
            if invocation is None:
                # Not registered yet right after send_command()
                time.sleep(interval)
                continue

            status = invocation["Status"]
            stdout = invocation.get("StandardOutputContent", "")
            stderr = invocation.get("StandardErrorContent", "")

            if status in RUNNING_STATES:
                time.sleep(interval)
                interval = min(interval * 2, POLL_INTERVAL_MAX)
                continue

            logger.debug("Command %s finished with status %s", command_id, status)

            if status == "Success":
                return stdout, stderr

            if status == "Failed":
                sys.stdout.write(stdout)
                sys.stderr.write(stderr)
                exit_code = invocation.get("ResponseCode", 0)
                raise RemoteCommandError(exit_code if exit_code > 0 else 1)

            if status == "TimedOut":
                raise EC2SSHError("command timed out on remote instance")

            if status in ("Cancelled", "Cancelling"):
                raise EC2SSHError("command was cancelled")

            raise EC2SSHError(f"unexpected command status: {status}")

    def _get_invocation(self, command_id: str, instance_id: str) -> Optional[dict]:
        try:
            return self.ssm_client.get_command_invocation(CommandId=command_id, InstanceId=instance_id)
        except botocore.exceptions.ClientError as ex:
            if ex.response.get("Error", {}).get("Code", "") != "InvocationDoesNotExist":
                raise
            return None
