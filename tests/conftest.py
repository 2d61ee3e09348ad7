"""Pytest configuration and fixtures."""

import pytest

from clients.base import StoreLister
from clients.listers import InMemoryLister
from clients.memory import InMemoryLoadBalancerClient
from engine import EngineContext, ReconciliationEngine
from events import EventBus, EventRecorder
from resources import (
    TAG_CLUSTER,
    TAG_INGRESS_NAME,
    TAG_NAMESPACE,
    LoadBalancerHandle,
    ResourceIdentity,
    load_balancer_name,
)

CLUSTER_NAME = "testcluster"
NODE_INSTANCES = ["i-0001", "i-0002"]


@pytest.fixture
def make_ingress():
    """Factory for ingress declarations."""

    def _make(
        name,
        namespace="default",
        service="web",
        port=80,
        annotations=None,
    ):
        return {
            "kind": "Ingress",
            "metadata": {
                "name": name,
                "namespace": namespace,
                "annotations": dict(annotations or {}),
            },
            "spec": {
                "rules": [
                    {
                        "host": f"{name}.example.com",
                        "http": {
                            "paths": [
                                {
                                    "path": "/",
                                    "backend": {
                                        "serviceName": service,
                                        "servicePort": port,
                                    },
                                }
                            ]
                        },
                    }
                ]
            },
        }

    return _make


@pytest.fixture
def make_service():
    """Factory for service objects."""

    def _make(
        name,
        namespace="default",
        port=80,
        node_port=30080,
        service_type="NodePort",
    ):
        return {
            "kind": "Service",
            "metadata": {"name": name, "namespace": namespace},
            "spec": {
                "type": service_type,
                "ports": [{"name": "http", "port": port, "nodePort": node_port}],
            },
        }

    return _make


@pytest.fixture
def make_node():
    """Factory for node objects."""

    def _make(name, instance_id):
        return {
            "kind": "Node",
            "metadata": {"name": name},
            "spec": {"externalID": instance_id},
        }

    return _make


@pytest.fixture
def make_handle():
    """Factory for load balancer handles matching the default fixtures."""

    def _make(namespace, name, node_port=30080, instances=tuple(NODE_INSTANCES)):
        identity = ResourceIdentity(namespace=namespace, name=name)
        lb_name = load_balancer_name(CLUSTER_NAME, identity)
        return LoadBalancerHandle(
            arn=f"arn:aws:elasticloadbalancing:us-east-1:000000000000:"
            f"loadbalancer/app/{lb_name}/0000",
            name=lb_name,
            dns_name=f"{lb_name}.us-east-1.elb.amazonaws.com",
            node_ports=(node_port,),
            instances=tuple(instances),
            tags={
                TAG_CLUSTER: CLUSTER_NAME,
                TAG_NAMESPACE: namespace,
                TAG_INGRESS_NAME: name,
            },
        )

    return _make


@pytest.fixture
def listers(make_service, make_node):
    """Listers with one NodePort service and two nodes, no ingresses."""
    return StoreLister(
        ingresses=InMemoryLister(),
        services=InMemoryLister([make_service("web")]),
        nodes=InMemoryLister(
            [make_node(f"node-{i}", iid) for i, iid in enumerate(NODE_INSTANCES)]
        ),
    )


@pytest.fixture
def client():
    """In-memory load balancer client."""
    return InMemoryLoadBalancerClient()


@pytest.fixture
def event_bus():
    return EventBus()


@pytest.fixture
def ctx(listers, client, event_bus):
    """Engine context for the test cluster."""
    return EngineContext(
        cluster_name=CLUSTER_NAME,
        listers=listers,
        client=client,
        recorder=EventRecorder(event_bus),
        max_concurrent_reconciles=4,
        max_targets_per_call=10,
    )


@pytest.fixture
def engine(ctx):
    """Reconciliation engine with an empty resource set."""
    return ReconciliationEngine(ctx)
