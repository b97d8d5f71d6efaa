import logging
import urllib.parse

# Needed for type hints
import argparse
from typing import Any, Dict, List, Optional

import boto3
import botocore.auth
import botocore.awsrequest
import botocore.exceptions

from .common import AWSSessionBase, EC2SSHError, EICETunnelError, NoMatchesError

logger = logging.getLogger("ec2ssh.ec2-instance-connect")

Endpoint = Dict[str, Any]

DEFAULT_SSH_PORT = 22
PRESIGNED_URL_EXPIRES = 60
SIGNING_SERVICE = "ec2-instance-connect"


class EmptyBodySigV4QueryAuth(botocore.auth.SigV4QueryAuth):
    """
    SigV4 query string signer that signs the hash of an empty body.

    The tunnel is opened with a bodiless GET so the payload hash is
    known up front instead of UNSIGNED-PAYLOAD.
    """

    def payload(self, request: botocore.awsrequest.AWSRequest) -> str:
        return botocore.auth.EMPTY_SHA256_HASH


def parse_tunnel_port(port: str) -> int:
    if not port:
        return DEFAULT_SSH_PORT
    try:
        value = int(port)
    except ValueError as e:
        raise EICETunnelError("cannot create EICE tunnel URI: port is not an integer") from e
    if value != DEFAULT_SSH_PORT:
        raise EICETunnelError(f"cannot create EICE tunnel URI: port must be {DEFAULT_SSH_PORT}")
    return value


class EC2InstanceConnectHelper(AWSSessionBase):
    def __init__(self, args: argparse.Namespace, session: Optional[boto3.session.Session] = None) -> None:
        super().__init__(args, session)

        # Create boto3 clients from session
        self.ec2ic_client = self.session.client("ec2-instance-connect")
        self.ec2_client = self.session.client("ec2")

    @property
    def region(self) -> str:
        return self.ec2_client.meta.region_name

    def send_ssh_public_key(self, instance: Dict[str, Any], login_name: str, public_key: str) -> None:
        instance_id = instance["InstanceId"]
        logger.debug("Sending SSH public key for %s to instance %s", login_name, instance_id)

        result = self.ec2ic_client.send_ssh_public_key(
            InstanceId=instance_id,
            InstanceOSUser=login_name,
            SSHPublicKey=public_key,
        )

        if not result.get("Success", False):
            raise EC2SSHError(f"failed to send SSH public key to {instance_id}")
        logger.debug("Sent SSH public key to instance %s", instance_id)

    def get_eice_by_id(self, eice_id: str) -> Endpoint:
        logger.debug("Searching for endpoint by ID %s", eice_id)

        response = self.ec2_client.describe_instance_connect_endpoints(
            InstanceConnectEndpointIds=[eice_id],
            Filters=[{"Name": "state", "Values": ["create-complete"]}],
        )
        endpoints = response.get("InstanceConnectEndpoints", [])
        logger.debug("Found %d endpoints", len(endpoints))

        if not endpoints:
            raise NoMatchesError(f"unable to find an endpoint with ID={eice_id}")
        logger.debug("Selected first matching endpoint %s", endpoints[0]["InstanceConnectEndpointId"])
        return endpoints[0]

    def guess_eice_by_vpc_and_subnet(self, vpc_id: str, subnet_id: str) -> Endpoint:
        """
        Find an endpoint for an instance in vpc_id / subnet_id.

        An endpoint in the same subnet is preferred, otherwise the first
        endpoint in the VPC is used.
        """
        logger.debug("Searching for endpoint by vpc %s and subnet %s", vpc_id, subnet_id)

        endpoints: List[Endpoint] = []
        paginator = self.ec2_client.get_paginator("describe_instance_connect_endpoints")
        response_iterator = paginator.paginate(
            Filters=[
                {"Name": "state", "Values": ["create-complete"]},
                {"Name": "vpc-id", "Values": [vpc_id]},
            ]
        )
        for page in response_iterator:
            logger.debug("Found %d endpoints", len(page.get("InstanceConnectEndpoints", [])))
            for endpoint in page.get("InstanceConnectEndpoints", []):
                if endpoint.get("SubnetId") == subnet_id:
                    logger.debug("Selected endpoint %s matching instance subnet", endpoint["InstanceConnectEndpointId"])
                    return endpoint
                endpoints.append(endpoint)

        if not endpoints:
            raise NoMatchesError(f"unable to find an endpoint matching instance vpc {vpc_id}")

        logger.debug("Selected endpoint %s matching instance vpc", endpoints[0]["InstanceConnectEndpointId"])
        return endpoints[0]

    def create_eice_tunnel_uri(self, instance: Dict[str, Any], port: str = "", eice_id: Optional[str] = None) -> str:
        """
        Mint a presigned wss:// URL opening a tunnel to the instance.

        The port and the private address are validated before any
        AWS call is made. The URL is valid for 60 seconds.
        """
        instance_id = instance["InstanceId"]
        logger.debug("Creating EICE tunnel URI for instance %s", instance_id)

        remote_port = parse_tunnel_port(port)
        private_ip = instance.get("PrivateIpAddress")
        if not private_ip:
            raise EICETunnelError(f"cannot create EICE tunnel URI: instance {instance_id} does not have a private IP address")

        if eice_id:
            endpoint = self.get_eice_by_id(eice_id)
        else:
            endpoint = self.guess_eice_by_vpc_and_subnet(instance.get("VpcId", ""), instance.get("SubnetId", ""))

        query = urllib.parse.urlencode(
            {
                "instanceConnectEndpointId": endpoint["InstanceConnectEndpointId"],
                "remotePort": str(remote_port),
                "privateIpAddress": private_ip,
            }
        )
        # X-Amz-Expires and the rest of the X-Amz-* parameters are added by the signer
        request = botocore.awsrequest.AWSRequest(method="GET", url=f"wss://{endpoint['DnsName']}/openTunnel?{query}")

        credentials = self.session.get_credentials()
        if credentials is None:
            raise botocore.exceptions.NoCredentialsError()

        signer = EmptyBodySigV4QueryAuth(
            credentials.get_frozen_credentials(), SIGNING_SERVICE, self.region, expires=PRESIGNED_URL_EXPIRES
        )
        signer.add_auth(request)

        logger.debug("Created EICE tunnel URI for %s through %s", instance_id, endpoint["InstanceConnectEndpointId"])
        return request.url
