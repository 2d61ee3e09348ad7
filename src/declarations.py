"""
Ingress declarations - turning an ingress object into desired state.
"""

import logging
from typing import Any, Callable, Dict, List, Tuple, Union

from config import DEFAULT_INGRESS_CLASS
from errors import DeclarationError
from resources import Backend, DesiredSpec, ResourceIdentity
from stringset import parse_string_list
from validation import validate_ingress

logger = logging.getLogger(__name__)

INGRESS_CLASS_ANNOTATION = "kubernetes.io/ingress.class"
SCHEME_ANNOTATION = "alb.ingress.kubernetes.io/scheme"
SUBNETS_ANNOTATION = "alb.ingress.kubernetes.io/subnets"
SECURITY_GROUPS_ANNOTATION = "alb.ingress.kubernetes.io/security-groups"

DEFAULT_NAMESPACE = "default"
VALID_SCHEMES = ("internet-facing", "internal")

NodePortResolver = Callable[[str, Union[int, str]], int]


def _metadata(ingress: Dict[str, Any]) -> Dict[str, Any]:
    metadata = ingress.get("metadata") if isinstance(ingress, dict) else None
    return metadata if isinstance(metadata, dict) else {}


def _annotations(ingress: Dict[str, Any]) -> Dict[str, str]:
    annotations = _metadata(ingress).get("annotations")
    return annotations if isinstance(annotations, dict) else {}


def is_class_valid(
    ingress: Dict[str, Any],
    ingress_class: str,
    default_class: str = DEFAULT_INGRESS_CLASS,
) -> bool:
    """
    Whether an ingress is addressed to this controller.

    An ingress without a class annotation belongs to the controller running
    with the default class.
    """
    annotated = _annotations(ingress).get(INGRESS_CLASS_ANNOTATION, "")
    if not annotated:
        return ingress_class == default_class
    return annotated == ingress_class


def ingress_identity(ingress: Dict[str, Any]) -> ResourceIdentity:
    """
    Return the identity of an ingress.

    The namespace defaults to ``default``, as it does for the API server.
    """
    metadata = _metadata(ingress)
    namespace = metadata.get("namespace") or DEFAULT_NAMESPACE
    name = metadata.get("name")
    if not name or not isinstance(name, str):
        raise DeclarationError("Ingress has no metadata.name")
    if not isinstance(namespace, str):
        raise DeclarationError(f"Ingress {name} has an invalid metadata.namespace")
    return ResourceIdentity(namespace=namespace, name=name)


def ingress_backends(ingress: Dict[str, Any]) -> List[Tuple[str, Union[int, str]]]:
    """
    Return the ``(service_key, service_port)`` pairs an ingress routes to.

    The default backend comes first, then rule backends in declaration
    order. Duplicates are removed.
    """
    namespace = ingress_identity(ingress).namespace
    spec = ingress.get("spec") or {}

    raw = []
    if spec.get("backend"):
        raw.append(spec["backend"])
    for rule in spec.get("rules") or []:
        for path in (rule.get("http") or {}).get("paths") or []:
            raw.append(path["backend"])

    backends = []
    for backend in raw:
        pair = (f"{namespace}/{backend['serviceName']}", backend["servicePort"])
        if pair not in backends:
            backends.append(pair)
    return backends


def build_desired_spec(
    ingress: Dict[str, Any],
    resolve_node_port: NodePortResolver,
    instances: List[str],
) -> DesiredSpec:
    """
    Build the desired load balancer state for an ingress.

    Args:
        ingress: The ingress declaration
        resolve_node_port: Maps (service_key, service_port) to a node port
        instances: Instance ids of the cluster nodes

    Raises:
        DeclarationError: If the declaration is malformed
        ServiceResolutionError: If a backend service cannot be resolved
    """
    is_valid, error = validate_ingress(ingress)
    if not is_valid:
        raise DeclarationError(f"Invalid ingress: {error}")

    annotations = _annotations(ingress)
    scheme = annotations.get(SCHEME_ANNOTATION, "internet-facing")
    if scheme not in VALID_SCHEMES:
        raise DeclarationError(
            f"Invalid scheme {scheme!r}, must be one of {', '.join(VALID_SCHEMES)}"
        )

    backends = []
    for service_key, service_port in ingress_backends(ingress):
        node_port = resolve_node_port(service_key, service_port)
        backends.append(
            Backend(
                service_key=service_key,
                service_port=service_port,
                node_port=node_port,
            )
        )

    if not backends:
        raise DeclarationError("Ingress does not reference any backend service")

    return DesiredSpec(
        scheme=scheme,
        subnets=parse_string_list(annotations.get(SUBNETS_ANNOTATION, "")),
        security_groups=parse_string_list(
            annotations.get(SECURITY_GROUPS_ANNOTATION, "")
        ),
        backends=backends,
        instances=list(instances),
    )
