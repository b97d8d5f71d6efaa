import argparse
import logging
import pathlib
import subprocess
import sys
from typing import Optional

import boto3
import botocore.credentials
import packaging.version

from . import __version__ as ec2ssh_version

__all__ = []

# ---------------------------------------------------------

__all__.append("configure_logging")


def configure_logging(level: int) -> None:
    """
    Configure logging format and level.
    """
    if level == logging.DEBUG:
        logging_format = "[%(name)s] %(levelname)s: %(message)s"
    else:
        logging_format = "%(levelname)s: %(message)s"

    # Default log level is set to WARNING
    logging.basicConfig(level=logging.WARNING, format=logging_format)
    # Except for our modules
    logging.getLogger("ec2ssh").setLevel(level)


# ---------------------------------------------------------

__all__.append("show_version")


def show_version(debug: bool = False) -> None:
    """
    Show package version.
    """
    version_string = f"ec2ssh/{ec2ssh_version}"
    if debug:
        version_string += f" python/{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}"
        version_string += f" boto3/{boto3.__version__}"
    print(version_string)


# ---------------------------------------------------------

__all__.append("EC2SSHError")
__all__.append("UsageError")
__all__.append("TargetError")
__all__.append("NoMatchesError")
__all__.append("NoAddressError")
__all__.append("EICETunnelError")
__all__.append("SubprocessExit")
__all__.append("RemoteCommandError")


class EC2SSHError(Exception):
    """Base class for all errors raised by ec2ssh"""


class UsageError(EC2SSHError):
    """Bad or missing command line arguments"""


class TargetError(UsageError):
    """Malformed destination string"""


class NoMatchesError(EC2SSHError):
    """No instance or endpoint satisfied the search"""


class NoAddressError(EC2SSHError):
    """Instance lacks the requested address type"""


class EICETunnelError(EC2SSHError):
    """Unable to mint a tunnel URL"""


class SubprocessExit(EC2SSHError):
    """
    Child process exited with a non-zero status.

    Carries the status so that it can become our own exit code.
    """

    def __init__(self, command: str, code: int) -> None:
        super().__init__(f"{command} exited with code {code}")
        self.command = command
        self.code = code


class RemoteCommandError(SubprocessExit):
    """Command run through SSM RunCommand failed on the instance"""

    def __init__(self, code: int) -> None:
        super().__init__("remote command", code)


# ---------------------------------------------------------

__all__.append("verify_plugin_version")


def verify_plugin_version(version_required: str, logger: logging.Logger) -> bool:
    """
    Verify that a session-manager-plugin is installed
    and is of a required version or newer.
    """
    session_manager_plugin = "session-manager-plugin"

    try:
        result = subprocess.run([session_manager_plugin, "--version"], stdout=subprocess.PIPE, check=False)
        plugin_version = result.stdout.decode("ascii").strip()
        logger.debug(f"{session_manager_plugin} version {plugin_version}")

        if packaging.version.parse(plugin_version) >= packaging.version.parse(version_required):
            return True

        logger.error(f"session-manager-plugin version {plugin_version} is installed, {version_required} is required")
    except FileNotFoundError:
        logger.error(f"{session_manager_plugin} not installed")
    except packaging.version.InvalidVersion:
        logger.error(f"Unable to parse {session_manager_plugin} version")

    logger.error(
        "Check out https://docs.aws.amazon.com/systems-manager/latest/userguide/session-manager-working-with-install-plugin.html for instructions",
    )

    return False


# ---------------------------------------------------------

__all__.append("verify_awscli_version")


def verify_awscli_version(version_required: str, logger: logging.Logger) -> bool:
    """
    Verify that the aws-cli is installed and is of a required version or newer.
    """
    aws_cli = "aws"

    try:
        result = subprocess.run([aws_cli, "--version"], stdout=subprocess.PIPE, check=False)
        cli_version = result.stdout.decode("ascii").strip().split(" ")[0].split("/")[1]
        logger.debug(f"AWS-CLI version {cli_version}")

        if packaging.version.parse(cli_version) >= packaging.version.parse(version_required):
            return True

        logger.error(f"AWS-CLI version {cli_version} is installed, {version_required} is required")
    except FileNotFoundError:
        logger.error("AWS-CLI is not installed")
    except (IndexError, packaging.version.InvalidVersion):
        logger.error("Unable to parse AWS-CLI version")

    return False


# ---------------------------------------------------------

__all__.append("create_session")


def create_session(profile: Optional[str] = None, region: Optional[str] = None) -> boto3.session.Session:
    # aws-cli compatible MFA cache
    cli_cache = pathlib.Path("~/.aws/cli/cache").expanduser()

    # Construct boto3 session with MFA cache
    session = boto3.session.Session(profile_name=profile, region_name=region)
    session._session.get_component("credential_provider").get_provider("assume-role").cache = (
        botocore.credentials.JSONFileCache(cli_cache)
    )
    return session


# ---------------------------------------------------------

__all__.append("AWSSessionBase")


class AWSSessionBase:
    def __init__(self, args: argparse.Namespace, session: Optional[boto3.session.Session] = None) -> None:
        # Share the caller's session so credentials are loaded only once
        if session is None:
            session = create_session(getattr(args, "profile", None), getattr(args, "region", None))
        self.session = session
