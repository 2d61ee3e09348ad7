"""Unit tests for bootstrap.py - Rebuilding state from existing load balancers."""

from dataclasses import replace

import pytest

from bootstrap import BootstrapAssembler, resource_from_load_balancer
from conftest import CLUSTER_NAME, NODE_INSTANCES
from errors import BootstrapError
from resources import ResourceIdentity


def _description(namespace="default", name="web", **overrides):
    description = {
        "LoadBalancerArn": "arn:aws:elasticloadbalancing:lb/app/lb/1",
        "LoadBalancerName": "testcluster-0123",
        "DNSName": "testcluster-0123.elb.amazonaws.com",
        "Scheme": "internal",
        "Subnets": ["subnet-a"],
        "SecurityGroups": ["sg-1"],
        "NodePorts": [30080],
        "Tags": [
            {"Key": "kubernetes.io/cluster-name", "Value": CLUSTER_NAME},
            {"Key": "kubernetes.io/namespace", "Value": namespace},
            {"Key": "kubernetes.io/ingress-name", "Value": name},
        ],
    }
    description.update(overrides)
    return description


class TestResourceFromLoadBalancer:
    """Tests for resource_from_load_balancer."""

    def test_builds_resource(self):
        resource = resource_from_load_balancer(_description(), ["i-2", "i-1"])

        assert resource.identity == ResourceIdentity("default", "web")
        assert resource.desired is None
        assert resource.tainted is False
        assert resource.status == "discovered"
        assert resource.handle.scheme == "internal"
        assert resource.handle.subnets == ("subnet-a",)
        assert resource.handle.instances == ("i-1", "i-2")
        assert resource.hostnames() == ["testcluster-0123.elb.amazonaws.com"]

    def test_missing_identity_tags(self):
        with pytest.raises(BootstrapError) as exc_info:
            resource_from_load_balancer(_description(Tags=[]), [])
        assert "testcluster-0123" in str(exc_info.value)

    def test_missing_arn(self):
        description = _description()
        del description["LoadBalancerArn"]
        with pytest.raises(BootstrapError):
            resource_from_load_balancer(description, [])


class TestBootstrapAssembler:
    """Tests for BootstrapAssembler."""

    @pytest.mark.asyncio
    async def test_assembles_cluster_load_balancers(self, client, make_handle):
        client.add_load_balancer(make_handle("default", "a"), NODE_INSTANCES)
        client.add_load_balancer(make_handle("prod", "b"), ["i-0009"])

        resources = await BootstrapAssembler(client).assemble(CLUSTER_NAME)

        assert sorted(str(i) for i in resources.identities()) == [
            "default/a",
            "prod/b",
        ]
        b = resources.get(ResourceIdentity("prod", "b"))
        assert b.handle.instances == ("i-0009",)

    @pytest.mark.asyncio
    async def test_ignores_other_clusters(self, client, make_handle):
        client.add_load_balancer(make_handle("default", "a"))

        resources = await BootstrapAssembler(client).assemble("othercluster")

        assert len(resources) == 0

    @pytest.mark.asyncio
    async def test_empty(self, client):
        resources = await BootstrapAssembler(client).assemble(CLUSTER_NAME)
        assert len(resources) == 0

    @pytest.mark.asyncio
    async def test_single_failure_fails_assembly(self, client, make_handle):
        good = make_handle("default", "good")
        bad = make_handle("default", "bad")
        client.add_load_balancer(good, NODE_INSTANCES)
        client.add_load_balancer(bad, NODE_INSTANCES)
        del client.targets[bad.arn]

        with pytest.raises(BootstrapError) as exc_info:
            await BootstrapAssembler(client).assemble(CLUSTER_NAME)

        assert "1 of 2" in str(exc_info.value)
        # Every load balancer was still described
        described = [c for c in client.calls if c[0] == "describe_targets"]
        assert len(described) == 2

    @pytest.mark.asyncio
    async def test_list_failure(self, client):
        async def failing_list(cluster_name):
            raise RuntimeError("access denied")

        client.list_cluster_load_balancers = failing_list

        with pytest.raises(BootstrapError) as exc_info:
            await BootstrapAssembler(client).assemble(CLUSTER_NAME)
        assert "access denied" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_duplicate_identity_fails_assembly(self, client, make_handle):
        first = make_handle("default", "web")
        second = replace(first, arn=f"{first.arn}-dup")
        client.add_load_balancer(first, NODE_INSTANCES)
        client.add_load_balancer(second, NODE_INSTANCES)

        with pytest.raises(BootstrapError) as exc_info:
            await BootstrapAssembler(client).assemble(CLUSTER_NAME)

        assert "default/web" in str(exc_info.value)
