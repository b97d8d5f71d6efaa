import os
import logging

from typing import List, Tuple

logger = logging.getLogger("ec2ssh.intent")

HELP = "help"
VERSION = "version"
SSH = "ssh"
SCP = "scp"
SFTP = "sftp"
SSM = "ssm"
LIST = "list"
EICE_TUNNEL = "eice-tunnel"
SSM_TUNNEL = "ssm-tunnel"

INTENT_FLAGS = {
    "--help": HELP,
    "-h": HELP,
    "--version": VERSION,
    "--ssh": SSH,
    "--scp": SCP,
    "--sftp": SFTP,
    "--ssm": SSM,
    "--list": LIST,
    "--eice-tunnel": EICE_TUNNEL,
    "--ssm-tunnel": SSM_TUNNEL,
}

BINARY_NAMES = {
    "ec2list": LIST,
    "ec2sftp": SFTP,
    "ec2scp": SCP,
    "ec2ssm": SSM,
}


def resolve(program: str, args: List[str]) -> Tuple[str, List[str]]:
    """
    Work out what to do from the program name and the first argument.

    An intent flag in the first position wins over the program name.
    """
    if args and args[0] in INTENT_FLAGS:
        intent = INTENT_FLAGS[args[0]]
        logger.debug("Intent %s from flag %s", intent, args[0])
        return intent, args[1:]

    basename = os.path.basename(program)
    intent = BINARY_NAMES.get(basename, SSH)
    logger.debug("Intent %s from program name %s", intent, basename)
    return intent, list(args)
