import io
from unittest.mock import patch

import pytest

from ec2ssh.common import UsageError
from ec2ssh.list_cli import DEFAULT_COLUMNS, InstanceList, parse_columns, print_list

from .helpers import make_instance


def test_parse_columns_default():
    assert parse_columns(None) == DEFAULT_COLUMNS.split(",")
    assert parse_columns("") == DEFAULT_COLUMNS.split(",")


def test_parse_columns_case_and_spaces():
    assert parse_columns("id, name,ipv6") == ["ID", "NAME", "IPV6"]


def test_parse_columns_invalid():
    with pytest.raises(UsageError, match="invalid column FOO"):
        parse_columns("id,foo")


def test_print_list_alignment():
    instances = [
        make_instance(),
        make_instance(
            InstanceId="i-0fedcba9876543210",
            PublicIpAddress=None,
            State={"Name": "stopped"},
            Tags=[{"Key": "Name", "Value": "db"}],
        ),
    ]
    output = io.StringIO()
    print_list(instances, ["ID", "NAME", "STATE", "PUBLIC-IP"], output)

    assert output.getvalue().splitlines() == [
        "ID                   NAME        STATE    PUBLIC-IP",
        "i-0123456789abcdef0  app-server  running  54.1.2.3",
        "i-0fedcba9876543210  db          stopped  -",
    ]


def test_print_list_no_instances():
    output = io.StringIO()
    print_list([], ["ID", "NAME"], output)
    assert output.getvalue() == "ID  NAME\n"


def test_print_list_all_columns():
    instance = make_instance(
        InstanceType="t3.micro",
        Placement={"AvailabilityZone": "us-east-1a"},
        Ipv6Address="2001:db8::1",
        PrivateDnsName="ip-10-0-0-5.ec2.internal",
    )
    output = io.StringIO()
    print_list([instance], ["TYPE", "AZ", "IPV6", "PRIVATE-DNS", "PUBLIC-DNS"], output)

    row = output.getvalue().splitlines()[1].split()
    assert row == ["t3.micro", "us-east-1a", "2001:db8::1", "ip-10-0-0-5.ec2.internal", "-"]


def test_instance_list_rejects_arguments():
    with pytest.raises(UsageError, match="unexpected argument"):
        InstanceList(["host"])
    with pytest.raises(UsageError):
        InstanceList(["-l", "admin"])


def test_instance_list_run(capsys):
    with patch("ec2ssh.list_cli.create_session") as create_session, patch(
        "ec2ssh.list_cli.InstanceResolver"
    ) as resolver_cls:
        resolver_cls.return_value.list_instances.return_value = [make_instance()]
        InstanceList(["--region", "eu-west-1", "--list-columns", "id,name"]).run()

    create_session.assert_called_once_with(None, "eu-west-1")
    assert capsys.readouterr().out == "ID                   NAME\ni-0123456789abcdef0  app-server\n"
