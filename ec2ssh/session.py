"""
Connection orchestration shared by ec2ssh, ec2scp and ec2sftp.

A session resolves the destination to an EC2 instance, decides how to
reach it (a direct address or a ProxyCommand tunnel through EICE or SSM),
pushes a public key through EC2 Instance Connect and finally runs the
ssh / scp / sftp binary with the computed command line.
"""

import os
import sys
import shlex
import shutil
import getpass
import logging
import tempfile
import subprocess

from typing import Dict, List, Optional

from .argsieve import Flag, Sieve
from .common import SubprocessExit, UsageError, create_session
from .ec2_instance_connect import EC2InstanceConnectHelper
from .resolver import AddrType, DstType, InstanceResolver, get_instance_addr
from .sshkey import generate_keypair, get_public_key
from .target import Target

logger = logging.getLogger("ec2ssh.session")

TUNNEL_URI_ENV = "EC2SSH_TUNNEL_URI"
TUNNEL_CONFIG_ENV = "EC2SSH_TUNNEL_CONFIG"

COMMON_FLAGS = [
    Flag("region", long="region", type=str),
    Flag("profile", long="profile", type=str),
    Flag("eice_id", long="eice-id", type=str),
    Flag("dst_type", long="destination-type", type=DstType.from_text),
    Flag("addr_type", long="address-type", type=AddrType.from_text),
    Flag("identity_file", short="i", type=str),
    Flag("use_eice", long="use-eice"),
    Flag("use_ssm", long="use-ssm"),
    Flag("no_send_keys", long="no-send-keys"),
    Flag("debug", long="debug"),
]


def execute_command(command: str, args: List[str], extra_env: Optional[Dict[str, str]] = None) -> None:
    """
    Run command in the foreground with our stdio and environment.

    A non-zero exit raises SubprocessExit, a child killed by signal N
    is reported as 128+N like the shell does.
    """
    env = dict(os.environ)
    if extra_env:
        env.update(extra_env)

    cmdline = [command] + args
    logger.debug("Running: %s", cmdline)
    result = subprocess.run(cmdline, env=env, check=False)

    returncode = result.returncode
    if returncode < 0:
        returncode = 128 - returncode
    logger.debug("%s exited with code %d", command, returncode)

    if returncode != 0:
        raise SubprocessExit(command, returncode)


def self_executable() -> str:
    """
    Absolute path of the running console script, for use in ProxyCommand.
    """
    program = sys.argv[0]
    if os.sep not in program:
        program = shutil.which(program) or program
    return os.path.abspath(program)


class BaseSSHSession:
    command = ""
    passthrough_with_arg: List[str] = []
    extra_flags: List[Flag] = []
    port_flag = ""

    def __init__(self, argv: List[str]) -> None:
        sieve = Sieve(COMMON_FLAGS + self.extra_flags, self.passthrough_with_arg)
        self.options, self.pass_args, positional = sieve.sift(argv)
        self.target: Optional[Target] = None
        self.parse_positional(positional)

        # --eice-id implies --use-eice
        if self.options.eice_id:
            self.options.use_eice = True
        self.validate()

        self.instance: Dict = {}
        self.private_key_path = ""
        self.public_key = ""
        self.proxy_command = ""
        self.tunnel_env: Dict[str, str] = {}

    # Implemented by subclasses
    def parse_positional(self, positional: List[str]) -> None:
        raise NotImplementedError()

    def target_args(self) -> List[str]:
        raise NotImplementedError()

    @property
    def login_flag(self) -> str:
        return ""

    @property
    def port(self) -> str:
        if self.options.port:
            return self.options.port
        return self.target.port if self.target else ""

    @property
    def debug(self) -> bool:
        return self.options.debug

    @property
    def use_tunnel(self) -> bool:
        return self.options.use_eice or self.options.use_ssm

    def validate(self) -> None:
        if self.target is None:
            raise UsageError("missing destination")
        if self.options.use_eice and self.options.use_ssm:
            raise UsageError("--use-eice and --use-ssm are mutually exclusive")
        if self.options.use_eice and self.options.addr_type == AddrType.PUBLIC:
            raise UsageError("EICE tunnel can't be used with --address-type public")

    def login_name(self) -> str:
        # OpenSSH lets -l win over user@host
        return self.login_flag or self.target.login or getpass.getuser()

    # ---------------------------------------------------------

    def setup_destination(self) -> None:
        instance_id = self.instance["InstanceId"]

        if self.use_tunnel:
            # Tunnelled sessions connect "to" the instance id
            self.target.set_host(instance_id)
            intent_flag = "--ssm-tunnel" if self.options.use_ssm else "--eice-tunnel"
            self.proxy_command = f"{shlex.quote(self_executable())} {intent_flag}"
            if self.options.debug:
                self.proxy_command += " --debug"
            logger.debug("Using ProxyCommand %s", self.proxy_command)
            return

        addr, addr_type = get_instance_addr(self.instance, self.options.addr_type)
        if addr_type == AddrType.IPV6:
            self.target.set_host_ipv6(addr)
        else:
            self.target.set_host(addr)
        logger.debug("Connecting to %s address %s", addr_type.value, addr)

    def setup_keys(self, tmp_dir: str) -> None:
        if self.options.identity_file:
            self.private_key_path = self.options.identity_file
            self.public_key = get_public_key(self.options.identity_file)
        else:
            self.private_key_path, self.public_key = generate_keypair(tmp_dir)

    def send_public_key(self) -> None:
        self.ec2ic.send_ssh_public_key(self.instance, self.login_name(), self.public_key)

    def setup_tunnel_env(self) -> None:
        if self.options.use_ssm:
            port = self.port or "22"
            self.tunnel_env[TUNNEL_CONFIG_ENV] = ":".join(
                [self.instance["InstanceId"], port, self.resolver.region or "", self.options.profile or ""]
            )
        elif self.options.use_eice:
            # Minted last, the URL is only valid for 60 seconds
            self.tunnel_env[TUNNEL_URI_ENV] = self.ec2ic.create_eice_tunnel_uri(
                self.instance, self.port, self.options.eice_id
            )

    def build_args(self) -> List[str]:
        args = []
        if self.proxy_command:
            args.append(f"-oProxyCommand={self.proxy_command}")
        args.append(f"-oHostKeyAlias={self.instance['InstanceId']}")
        if self.login_flag:
            args.extend(["-l", self.login_flag])
        if self.options.port:
            args.extend([self.port_flag, self.options.port])
        if self.private_key_path:
            args.append(f"-i{self.private_key_path}")
        args.extend(self.pass_args)
        args.extend(self.target_args())
        return args

    # ---------------------------------------------------------

    def create_clients(self) -> None:
        session = create_session(self.options.profile, self.options.region)
        self.resolver = InstanceResolver(self.options, session)
        self.ec2ic = EC2InstanceConnectHelper(self.options, session)

    def run(self) -> None:
        self.create_clients()

        self.instance = self.resolver.get_instance(self.target.host, self.options.dst_type)
        logger.debug("Resolved '%s' to %s", self.target.host, self.instance["InstanceId"])

        self.setup_destination()

        with tempfile.TemporaryDirectory(prefix="ec2ssh") as tmp_dir:
            self.setup_keys(tmp_dir)

            if not self.options.no_send_keys:
                self.send_public_key()

            self.setup_tunnel_env()

            execute_command(self.command, self.build_args(), self.tunnel_env)
