# tests/aws/test_inventory.py
from __future__ import annotations

import pytest
from botocore.exceptions import ClientError, NoRegionError

from etcdmate.aws.inventory import AutoScalingInventory, derive_member
from etcdmate.config.models import EndpointSettings
from etcdmate.etcd.errors import InventoryError
from etcdmate.etcd.models import Member


# ---- Fakes for boto3 ----

class FakePaginator:
    def __init__(self, pages, log):
        self._pages = pages
        self.log = log

    def paginate(self, **kw):
        self.log.append(("paginate", kw))
        return iter(self._pages)


class FakeAutoScaling:
    def __init__(self, log, instances=None, groups=None, error=None):
        self.log = log
        self._instances = instances
        self._groups = groups
        self._error = error

    def describe_auto_scaling_instances(self, **kw):
        self.log.append(("describe_auto_scaling_instances", kw))
        if self._error:
            raise self._error
        return {"AutoScalingInstances": self._instances or []}

    def describe_auto_scaling_groups(self, **kw):
        self.log.append(("describe_auto_scaling_groups", kw))
        return {"AutoScalingGroups": self._groups or []}


class FakeEC2:
    def __init__(self, log, pages=None):
        self.log = log
        self._pages = pages or []

    def get_paginator(self, name):
        assert name == "describe_instances"
        return FakePaginator(self._pages, self.log)


class FakeSession:
    def __init__(self, autoscaling, ec2):
        self._clients = {"autoscaling": autoscaling, "ec2": ec2}

    def client(self, name):
        return self._clients[name]


def _inventory(log, *, instances=None, groups=None, pages=None, error=None):
    session = FakeSession(FakeAutoScaling(log, instances, groups, error), FakeEC2(log, pages))
    return AutoScalingInventory(session)


GROUP = {
    "AutoScalingGroupName": "etcd-asg",
    "Instances": [
        {"InstanceId": "i-1", "LifecycleState": "InService"},
        {"InstanceId": "i-2", "LifecycleState": "Terminating"},
        {"InstanceId": "i-3", "LifecycleState": "InService"},
    ],
}


def test_derive_member_builds_urls_from_settings():
    endpoints = EndpointSettings(client_schema="https", client_port=2379, peer_schema="http", peer_port=2380)
    m = derive_member("i-5", "10.0.0.5", endpoints)
    assert m == Member(name="i-5", client_url="https://10.0.0.5:2379", peer_url="http://10.0.0.5:2380")


def test_expected_members_in_service_only_in_group_order():
    log = []
    pages = [
        {"Reservations": [{"Instances": [{"InstanceId": "i-3", "PrivateIpAddress": "10.0.0.3"}]}]},
        {"Reservations": [{"Instances": [{"InstanceId": "i-1", "PrivateIpAddress": "10.0.0.1"}]}]},
    ]
    inv = _inventory(
        log,
        instances=[{"InstanceId": "i-1", "AutoScalingGroupName": "etcd-asg"}],
        groups=[GROUP],
        pages=pages,
    )

    members = inv.expected_members("i-1", EndpointSettings())

    assert members == [
        Member(name="i-1", client_url="http://10.0.0.1:2379", peer_url="http://10.0.0.1:2380"),
        Member(name="i-3", client_url="http://10.0.0.3:2379", peer_url="http://10.0.0.3:2380"),
    ]
    assert ("describe_auto_scaling_instances", {"InstanceIds": ["i-1"], "MaxRecords": 1}) in log
    assert ("describe_auto_scaling_groups", {"AutoScalingGroupNames": ["etcd-asg"], "MaxRecords": 1}) in log
    assert ("paginate", {"InstanceIds": ["i-1", "i-3"]}) in log


def test_instance_without_private_ip_is_skipped():
    log = []
    pages = [{"Reservations": [{"Instances": [
        {"InstanceId": "i-1", "PrivateIpAddress": "10.0.0.1"},
        {"InstanceId": "i-3"},
    ]}]}]
    inv = _inventory(log, instances=[{"AutoScalingGroupName": "etcd-asg"}], groups=[GROUP], pages=pages)
    assert [m.name for m in inv.expected_members("i-1", EndpointSettings())] == ["i-1"]


def test_describe_instances_never_called_with_empty_ids():
    log = []
    inv = _inventory(log)
    assert inv.describe_instances([]) == []
    assert log == []


def test_instance_outside_any_group():
    inv = _inventory([], instances=[])
    with pytest.raises(InventoryError):
        inv.find_group("i-404")


def test_missing_group():
    inv = _inventory([], groups=[])
    with pytest.raises(InventoryError):
        inv.in_service_instance_ids("etcd-asg")


def test_aws_errors_become_inventory_errors():
    err = ClientError({"Error": {"Code": "AccessDenied", "Message": "nope"}}, "DescribeAutoScalingInstances")
    inv = _inventory([], error=err)
    with pytest.raises(InventoryError) as exc:
        inv.find_group("i-1")
    assert "AccessDenied" in str(exc.value)


def test_missing_region_is_inventory_error(tmp_path, monkeypatch):
    for var in ("AWS_REGION", "AWS_DEFAULT_REGION", "AWS_PROFILE"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("AWS_CONFIG_FILE", str(tmp_path / "config"))
    monkeypatch.setenv("AWS_SHARED_CREDENTIALS_FILE", str(tmp_path / "credentials"))

    with pytest.raises(InventoryError) as exc:
        AutoScalingInventory(region=None)
    assert "region" in str(exc.value)


def test_client_creation_errors_become_inventory_errors():
    class NoRegionSession:
        def client(self, name):
            raise NoRegionError()

    with pytest.raises(InventoryError):
        AutoScalingInventory(NoRegionSession())
