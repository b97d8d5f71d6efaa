"""Shared test data."""

from typing import Any, Dict


def make_instance(**overrides: Any) -> Dict[str, Any]:
    """A describe_instances style instance record."""
    instance = {
        "InstanceId": "i-0123456789abcdef0",
        "PrivateIpAddress": "10.0.0.5",
        "PublicIpAddress": "54.1.2.3",
        "VpcId": "vpc-11111111",
        "SubnetId": "subnet-22222222",
        "State": {"Name": "running"},
        "Tags": [{"Key": "Name", "Value": "app-server"}],
    }
    instance.update(overrides)
    return {key: value for key, value in instance.items() if value is not None}
