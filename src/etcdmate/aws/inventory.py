# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/etcdmate/aws/inventory.py

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

import boto3
from botocore.exceptions import BotoCoreError, ClientError, NoRegionError

from etcdmate.config.models import EndpointSettings
from etcdmate.etcd.errors import InventoryError
from etcdmate.etcd.models import Member

log = logging.getLogger("etcdmate")

IN_SERVICE = "InService"


def derive_member(name: str, address: str, endpoints: EndpointSettings) -> Member:
    return Member(
        name=name,
        client_url=endpoints.client_url(address),
        peer_url=endpoints.peer_url(address),
    )


class AutoScalingInventory:
    """
    Expected etcd roster = in-service instances of the autoscaling group the
    local instance belongs to.
    """

    def __init__(self, session: Optional[boto3.session.Session] = None, *, region: Optional[str] = None):
        try:
            session = session or boto3.session.Session(region_name=region)
            self._autoscaling = session.client("autoscaling")
            self._ec2 = session.client("ec2")
        except NoRegionError as exc:
            raise InventoryError(
                "No AWS region configured; pass --region or set AWS_REGION"
            ) from exc
        except BotoCoreError as exc:
            raise InventoryError(f"Cannot create AWS clients: {exc}") from exc

    def find_group(self, instance_id: str) -> str:
        log.info("Looking for Autoscaling group of instance %s", instance_id)
        try:
            resp = self._autoscaling.describe_auto_scaling_instances(
                InstanceIds=[instance_id],
                MaxRecords=1,
            )
        except (BotoCoreError, ClientError) as exc:
            raise InventoryError(f"DescribeAutoScalingInstances failed: {exc}") from exc

        items = resp.get("AutoScalingInstances") or []
        if not items:
            raise InventoryError(f"Instance {instance_id} is not part of any Autoscaling group")
        group = items[0]["AutoScalingGroupName"]
        log.info("Found Autoscaling group %s", group)
        return group

    def in_service_instance_ids(self, group: str) -> List[str]:
        log.info("Looking for instances in Autoscaling group %s", group)
        try:
            resp = self._autoscaling.describe_auto_scaling_groups(
                AutoScalingGroupNames=[group],
                MaxRecords=1,
            )
        except (BotoCoreError, ClientError) as exc:
            raise InventoryError(f"DescribeAutoScalingGroups failed: {exc}") from exc

        groups = resp.get("AutoScalingGroups") or []
        if not groups:
            raise InventoryError(f"Autoscaling group {group} not found")

        ids: List[str] = []
        for instance in groups[0].get("Instances", []):
            log.debug("Found instance %s", instance)
            if instance.get("LifecycleState") == IN_SERVICE:
                ids.append(instance["InstanceId"])
            else:
                log.info(
                    "Ignoring instance %s (%s)",
                    instance.get("InstanceId"),
                    instance.get("LifecycleState"),
                )
        return ids

    def describe_instances(self, instance_ids: Sequence[str]) -> List[Dict[str, Any]]:
        # An empty InstanceIds filter would describe every instance in the region.
        if not instance_ids:
            return []
        instances: List[Dict[str, Any]] = []
        try:
            paginator = self._ec2.get_paginator("describe_instances")
            for page in paginator.paginate(InstanceIds=list(instance_ids)):
                for reservation in page.get("Reservations", []):
                    instances.extend(reservation.get("Instances", []))
        except (BotoCoreError, ClientError) as exc:
            raise InventoryError(f"DescribeInstances failed: {exc}") from exc
        return instances

    def expected_members(self, instance_id: str, endpoints: EndpointSettings) -> List[Member]:
        group = self.find_group(instance_id)
        ids = self.in_service_instance_ids(group)

        # Keep the autoscaling group order, whatever order EC2 answers in.
        by_id = {i["InstanceId"]: i for i in self.describe_instances(ids)}
        members: List[Member] = []
        for iid in ids:
            instance = by_id.get(iid)
            if instance is None:
                log.warning("Instance %s vanished between lookups; skipping", iid)
                continue
            address = instance.get("PrivateIpAddress")
            if not address:
                log.warning("Instance %s has no private IP yet; skipping", iid)
                continue
            members.append(derive_member(iid, address, endpoints))

        log.info("Expected members %s", members)
        return members
