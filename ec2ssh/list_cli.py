#!/usr/bin/env python3

# List EC2 instances in a table

import logging

from typing import Any, Dict, List, Optional, TextIO

from .argsieve import Flag, Sieve
from .common import UsageError, create_session
from .resolver import InstanceResolver, get_instance_ipv6, get_instance_name

logger = logging.getLogger("ec2ssh.list")

ALLOWED_COLUMNS = [
    "ID", "NAME", "STATE", "TYPE", "AZ", "PRIVATE-IP",
    "PUBLIC-IP", "IPV6", "PRIVATE-DNS", "PUBLIC-DNS",
]  # fmt: skip
DEFAULT_COLUMNS = "ID,NAME,STATE,PRIVATE-IP,PUBLIC-IP"
COLUMN_PADDING = 2

LIST_FLAGS = [
    Flag("region", long="region", type=str),
    Flag("profile", long="profile", type=str),
    Flag("columns", long="list-columns", type=str),
    Flag("debug", long="debug"),
]


def parse_columns(requested: Optional[str]) -> List[str]:
    if not requested:
        requested = DEFAULT_COLUMNS
    columns = requested.upper().replace(" ", "").split(",")
    for column in columns:
        if column not in ALLOWED_COLUMNS:
            raise UsageError(f"invalid list columns: invalid column {column}")
    return columns


def instance_values(instance: Dict[str, Any]) -> Dict[str, Optional[str]]:
    return {
        "ID": instance.get("InstanceId"),
        "NAME": get_instance_name(instance),
        "STATE": instance.get("State", {}).get("Name"),
        "TYPE": instance.get("InstanceType"),
        "AZ": instance.get("Placement", {}).get("AvailabilityZone"),
        "PRIVATE-IP": instance.get("PrivateIpAddress"),
        "PUBLIC-IP": instance.get("PublicIpAddress"),
        "IPV6": get_instance_ipv6(instance),
        "PRIVATE-DNS": instance.get("PrivateDnsName"),
        "PUBLIC-DNS": instance.get("PublicDnsName"),
    }


def print_list(instances: List[Dict[str, Any]], columns: List[str], output: Optional[TextIO] = None) -> None:
    rows = [columns]
    for instance in instances:
        values = instance_values(instance)
        rows.append([values[column] or "-" for column in columns])

    widths = [max(len(row[idx]) for row in rows) for idx in range(len(columns))]

    for row in rows:
        cells = [f"{cell:{width + COLUMN_PADDING}}" for cell, width in zip(row[:-1], widths)]
        print("".join(cells) + row[-1], file=output)


class InstanceList:
    def __init__(self, argv: List[str]) -> None:
        self.options, positional = Sieve(LIST_FLAGS).parse(argv)
        if positional:
            raise UsageError(f"unexpected argument {positional[0]}")
        self.columns = parse_columns(self.options.columns)

    @property
    def debug(self) -> bool:
        return self.options.debug

    def run(self) -> None:
        resolver = InstanceResolver(self.options, create_session(self.options.profile, self.options.region))
        instances = resolver.list_instances()
        logger.debug("Listing %d instances", len(instances))
        print_list(instances, self.columns)
