"""
Object listers backed by memory or by a YAML manifest on disk.

The manifest lister re-reads its file on every ``list()`` call so a local
run picks up edits on the next sync cycle, much like an informer cache
picks up watch events.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from clients.base import ObjectLister, StoreLister

logger = logging.getLogger(__name__)


def object_key(obj: Dict[str, Any]) -> str:
    """Return ``namespace/name``, or ``name`` for cluster-scoped objects."""
    metadata = obj.get("metadata") or {}
    name = metadata.get("name", "")
    namespace = metadata.get("namespace")
    return f"{namespace}/{name}" if namespace else name


class InMemoryLister(ObjectLister):
    """Lister over a fixed list of objects."""

    def __init__(self, objects: Optional[List[Dict[str, Any]]] = None):
        self.objects: List[Dict[str, Any]] = list(objects or [])

    def list(self) -> List[Dict[str, Any]]:
        return list(self.objects)

    def get_by_key(self, key: str) -> Tuple[Optional[Dict[str, Any]], bool]:
        for obj in self.objects:
            if object_key(obj) == key:
                return obj, True
        return None, False


class ManifestLister(ObjectLister):
    """Lister over the objects of one kind in a multi-document YAML file."""

    def __init__(self, path: str, kind: str):
        self.path = Path(path)
        self.kind = kind

    def list(self) -> List[Dict[str, Any]]:
        with open(self.path, "r") as f:
            documents = list(yaml.safe_load_all(f))

        objects = []
        for doc in documents:
            if not doc:
                continue
            # Support "kind: List" wrappers as produced by kubectl
            items = doc.get("items") if doc.get("kind") == "List" else [doc]
            objects.extend(
                item for item in items or [] if item.get("kind") == self.kind
            )
        return objects

    def get_by_key(self, key: str) -> Tuple[Optional[Dict[str, Any]], bool]:
        for obj in self.list():
            if object_key(obj) == key:
                return obj, True
        return None, False


def manifest_store(path: str) -> StoreLister:
    """Build a StoreLister reading ingresses, services and nodes from a file."""
    logger.info(f"Reading declarations from {path}")
    return StoreLister(
        ingresses=ManifestLister(path, "Ingress"),
        services=ManifestLister(path, "Service"),
        nodes=ManifestLister(path, "Node"),
    )
