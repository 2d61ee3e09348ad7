"""
Lookups against the cluster object store used while building desired state.
"""

import logging
from typing import List, Union

from clients.base import ObjectLister
from errors import PortNotFoundError, ServiceNotFoundError, WrongServiceTypeError

logger = logging.getLogger(__name__)

SERVICE_TYPE_NODE_PORT = "NodePort"


def resolve_node_port(
    services: ObjectLister, service_key: str, target_port: Union[int, str]
) -> int:
    """
    Return the node port a service exposes for a given service port.

    Args:
        services: Lister over Service objects
        service_key: ``namespace/name`` of the service
        target_port: The service port (number or port name) referenced by the
            ingress backend

    Returns:
        The node port number

    Raises:
        ServiceNotFoundError: If the service does not exist
        WrongServiceTypeError: If the service is not of type NodePort
        PortNotFoundError: If no port on the service matches target_port
    """
    service, exists = services.get_by_key(service_key)
    if not exists:
        raise ServiceNotFoundError(f"Unable to find the {service_key} service")

    spec = service.get("spec") or {}
    if spec.get("type") != SERVICE_TYPE_NODE_PORT:
        raise WrongServiceTypeError(f"{service_key} service is not of type NodePort")

    for port in spec.get("ports") or []:
        if target_port not in (port.get("port"), port.get("name")):
            continue
        if port.get("nodePort") is not None:
            return int(port["nodePort"])

    raise PortNotFoundError(
        f"Unable to find port {target_port} defined in the {service_key} service"
    )


def list_node_instances(nodes: ObjectLister) -> List[str]:
    """
    Return the sorted instance ids of every cluster node.

    The id comes from ``spec.externalID`` or, failing that, the last path
    segment of ``spec.providerID`` (``aws:///us-east-1a/i-0abc``).
    """
    instances = []
    for node in nodes.list():
        spec = node.get("spec") or {}
        instance_id = spec.get("externalID")
        if not instance_id and spec.get("providerID"):
            instance_id = spec["providerID"].rstrip("/").rsplit("/", 1)[-1]
        if instance_id:
            instances.append(instance_id)
        else:
            logger.debug(
                f"Skipping node {node.get('metadata', {}).get('name')}: no instance id"
            )
    return sorted(instances)
