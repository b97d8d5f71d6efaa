#!/usr/bin/env python3

# ec2ssh / ec2scp / ec2sftp / ec2ssm / ec2list entry point
#
# Works out what to do from the program name or the first argument,
# runs it and turns whatever went wrong into an exit code.

import sys
import logging

from typing import Callable, Dict, List

from botocore.exceptions import BotoCoreError, ClientError

from .common import EC2SSHError, SubprocessExit, UsageError, configure_logging, show_version
from . import intent
from .list_cli import InstanceList
from .scp_cli import SCPSession
from .sftp_cli import SFTPSession
from .ssh_cli import SSHSession
from .ssm_session_cli import SSMSession
from .tunnel_cli import EICETunnel, SSMTunnel

logger = logging.getLogger("ec2ssh.cli")

HELP_TEXT = """\
Usage: ec2ssh [ec2ssh options] [ssh arguments] destination [command [argument ...]]

Connect to an EC2 instance directly using SSH or via the EC2 Instance Connect
Endpoint (EICE) or SSM Session Manager, by the instance ID, private, public,
or IPv6 address, private DNS name, or name tag, using ephemeral SSH keys.

  Example - Connect to an instance using the instance ID:
     $ ec2ssh -l ec2-user i-0123456789abcdef0

  Example - Connect to an instance using a name tag with the public IP address:
     $ ec2ssh -p 2222 --address-type public ec2-user@app01

  Example - Connect to an instance using its private DNS name via an EICE tunnel:
     $ ec2ssh --use-eice ip-10-0-0-1

  Example - Use any SSH options and arguments as usual:
     $ ec2ssh --use-eice -L 8888:127.0.0.1:8888 -N -i ~/.ssh/id_rsa_alt -o VisualHostKey=Yes app01

Modes (first argument only, or by program name):
  --ssh       SSH to the instance, the default
  --scp       Copy files with scp, same as 'ec2scp'
  --sftp      Run sftp against the instance, same as 'ec2sftp'
  --ssm       Start an SSM shell or run a command, same as 'ec2ssm'
  --list      List instances in the region, same as 'ec2list'
  --version   Show version and exit
  --help, -h  Show this help and exit

Options:
  --region <string>
     Use the specified AWS region (env AWS_REGION, AWS_DEFAULT_REGION).
     Defaults to using the AWS SDK configuration.

  --profile <string>
     Use the specified AWS profile (env AWS_PROFILE).
     Defaults to using the AWS SDK configuration.

  --list-columns <columns>
     Specify columns to display in the list output.
     Defaults to ID,NAME,STATE,PRIVATE-IP,PUBLIC-IP
     Available columns: ID,NAME,STATE,TYPE,AZ,PRIVATE-IP,PUBLIC-IP,IPV6,PRIVATE-DNS,PUBLIC-DNS

  --use-eice
     Use EC2 Instance Connect Endpoint (EICE) to connect to the instance.
     Ignores --address-type, private address is always used.

  --eice-id <string>
     Specifies the EC2 Instance Connect Endpoint (EICE) ID to use.
     Defaults to autodetection based on the instance's VPC and subnet.
     Automatically implies --use-eice.

  --use-ssm
     Tunnel the connection through SSM Session Manager.
     Requires aws-cli and session-manager-plugin.

  --destination-type <id|private_ip|public_ip|ipv6|private_dns|name_tag>
     Specify the destination type for instance search.
     Defaults to automatically detecting the type based on the destination.
     First matched instance will be used for connection.

  --address-type <private|public|ipv6>
     Specify the address type for connecting to the instance.
     Defaults to use the first available address from the list: public, ipv6, private.

  --no-send-keys
     Do not send SSH keys to the instance using EC2 Instance Connect.

  --timeout <duration>
     How long to wait for an 'ec2ssm' command to complete, e.g. 90s or 5m.
     Defaults to 60s.

  --debug
     Enable debug logging.

  ssh arguments
     Specify arguments to pass to SSH.

  destination
     Specify the destination for connection. Can be one of: instance ID,
     private, public or IPv6 IP address, private DNS name, or name tag.
"""


class Runner:
    def __init__(self) -> None:
        self.constructors: Dict[str, Callable] = {
            intent.SSH: SSHSession,
            intent.SCP: SCPSession,
            intent.SFTP: SFTPSession,
            intent.SSM: SSMSession,
            intent.LIST: InstanceList,
            intent.EICE_TUNNEL: EICETunnel,
            intent.SSM_TUNNEL: SSMTunnel,
        }

    def run(self, program: str, argv: List[str]) -> int:
        what, args = intent.resolve(program, argv)

        if what == intent.HELP:
            print(HELP_TEXT, file=sys.stderr)
            return 1

        if what == intent.VERSION:
            show_version(debug="--debug" in args)
            return 0

        try:
            runner = self.constructors[what](args)
            configure_logging(logging.DEBUG if runner.debug else logging.WARNING)
            runner.run()

        except SubprocessExit as e:
            # The child already told the user what went wrong
            logger.debug(e)
            return e.code

        except UsageError as e:
            print(f"ec2ssh: {e}", file=sys.stderr)
            print(HELP_TEXT, file=sys.stderr)
            return 1

        except (EC2SSHError, BotoCoreError, ClientError, OSError) as e:
            logger.debug("Failed", exc_info=True)
            print(f"ec2ssh: {e}", file=sys.stderr)
            return 1

        return 0


def main() -> int:
    try:
        sys.exit(Runner().run(sys.argv[0], sys.argv[1:]))
    except KeyboardInterrupt:
        sys.exit(130)


if __name__ == "__main__":
    main()
