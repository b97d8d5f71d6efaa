#!/usr/bin/env python3

import enum
import logging
import argparse
import ipaddress

from typing import Any, Dict, List, Optional, Tuple

import boto3

from .common import AWSSessionBase, NoAddressError, NoMatchesError

logger = logging.getLogger("ec2ssh.resolver")

Instance = Dict[str, Any]

RFC1918_NETWORKS = [
    ipaddress.ip_network("10.0.0.0/8"),
    ipaddress.ip_network("172.16.0.0/12"),
    ipaddress.ip_network("192.168.0.0/16"),
]


class DstType(enum.Enum):
    ID = "id"
    PRIVATE_IP = "private_ip"
    PUBLIC_IP = "public_ip"
    IPV6 = "ipv6"
    PRIVATE_DNS = "private_dns"
    NAME_TAG = "name_tag"

    @classmethod
    def from_text(cls, text: str) -> "DstType":
        # Empty text is not valid, absence means auto-detect
        for member in cls:
            if member.value == text:
                return member
        raise ValueError(f"unknown destination type: {text!r}")


class AddrType(enum.Enum):
    PRIVATE = "private"
    PUBLIC = "public"
    IPV6 = "ipv6"

    @classmethod
    def from_text(cls, text: str) -> "AddrType":
        for member in cls:
            if member.value == text:
                return member
        raise ValueError(f"unknown address type: {text!r}")


def guess_destination_type(destination: str) -> DstType:
    """
    Infer the destination type from the destination string alone.
    """
    if destination.startswith("ip-") or destination.endswith((".ec2.internal", ".compute.internal")):
        return DstType.PRIVATE_DNS
    if destination.startswith("i-"):
        return DstType.ID

    try:
        address = ipaddress.ip_address(destination)
    except ValueError:
        return DstType.NAME_TAG

    if address.version == 6:
        if address.ipv4_mapped is None:
            return DstType.IPV6
        address = address.ipv4_mapped
    if any(address in network for network in RFC1918_NETWORKS):
        return DstType.PRIVATE_IP
    return DstType.PUBLIC_IP


def get_instance_ipv6(instance: Instance) -> Optional[str]:
    if instance.get("Ipv6Address"):
        return instance["Ipv6Address"]
    for interface in instance.get("NetworkInterfaces", []):
        for address in interface.get("Ipv6Addresses", []):
            if address.get("Ipv6Address"):
                return address["Ipv6Address"]
    return None


def get_instance_name(instance: Instance) -> Optional[str]:
    for tag in instance.get("Tags", []):
        if tag["Key"] == "Name":
            return tag["Value"]
    return None


def _get_addr_by_type(instance: Instance, addr_type: AddrType) -> Optional[str]:
    if addr_type == AddrType.PRIVATE:
        return instance.get("PrivateIpAddress")
    if addr_type == AddrType.PUBLIC:
        return instance.get("PublicIpAddress")
    return get_instance_ipv6(instance)


AUTO_ADDR_ORDER = [AddrType.PUBLIC, AddrType.IPV6, AddrType.PRIVATE]


def get_instance_addr(instance: Instance, addr_type: Optional[AddrType] = None) -> Tuple[str, AddrType]:
    """
    Pick the address to connect to.

    With no addr_type the first of public IPv4, IPv6 and private IPv4
    that the instance has wins. An explicit addr_type must be present.
    """
    instance_id = instance["InstanceId"]

    if addr_type is None:
        for candidate in AUTO_ADDR_ORDER:
            addr = _get_addr_by_type(instance, candidate)
            if addr:
                logger.debug("Selected %s address %s of %s", candidate.value, addr, instance_id)
                return addr, candidate
        raise NoAddressError(f"no IP address for instance {instance_id}")

    addr = _get_addr_by_type(instance, addr_type)
    if not addr:
        raise NoAddressError(f"no {addr_type.value} address for instance {instance_id}")
    return addr, addr_type


FILTER_NAMES = {
    DstType.PRIVATE_IP: "private-ip-address",
    DstType.PUBLIC_IP: "ip-address",
    DstType.IPV6: "ipv6-address",
    DstType.PRIVATE_DNS: "private-dns-name",
    DstType.NAME_TAG: "tag:Name",
}


class InstanceResolver(AWSSessionBase):
    def __init__(self, args: argparse.Namespace, session: Optional[boto3.session.Session] = None) -> None:
        super().__init__(args, session)

        # Create boto3 client from session
        self.ec2_client = self.session.client("ec2")

    @property
    def region(self) -> str:
        return self.ec2_client.meta.region_name

    def _get_first_instance(self, **kwargs: Any) -> Instance:
        response = self.ec2_client.describe_instances(**kwargs)
        logger.debug("Found %d reservations", len(response["Reservations"]))
        for reservation in response["Reservations"]:
            for instance in reservation["Instances"]:
                logger.debug("Selected first matching instance %s", instance["InstanceId"])
                return instance
        raise NoMatchesError(f"no matching instances found in {self.region}")

    def get_instance_by_id(self, instance_id: str) -> Instance:
        logger.debug("Searching for instance by ID %s", instance_id)
        try:
            return self._get_first_instance(InstanceIds=[instance_id])
        except NoMatchesError as e:
            raise NoMatchesError(f"unable to find an instance with ID={instance_id}: {e}") from e

    def get_running_instance_by_filter(self, filter_name: str, filter_value: str) -> Instance:
        logger.debug("Searching for instance by %s=%s", filter_name, filter_value)
        filters = [
            {"Name": filter_name, "Values": [filter_value]},
            {"Name": "instance-state-name", "Values": ["running"]},
        ]
        try:
            return self._get_first_instance(Filters=filters)
        except NoMatchesError as e:
            raise NoMatchesError(f"unable to find a running instance with {filter_name}={filter_value}: {e}") from e

    def get_instance(self, destination: str, dst_type: Optional[DstType] = None) -> Instance:
        if dst_type is None:
            dst_type = guess_destination_type(destination)
            logger.debug("Guessed destination type %s for %s", dst_type.value, destination)

        if dst_type == DstType.ID:
            return self.get_instance_by_id(destination)

        if dst_type == DstType.PRIVATE_DNS and "." not in destination:
            destination += ".*"  # e.g. ip-10-0-0-1.*

        return self.get_running_instance_by_filter(FILTER_NAMES[dst_type], destination)

    def list_instances(self) -> List[Instance]:
        logger.debug("Listing all instances")
        instances = []
        paginator = self.ec2_client.get_paginator("describe_instances")
        for page in paginator.paginate():
            for reservation in page["Reservations"]:
                instances.extend(reservation["Instances"])
        return instances
