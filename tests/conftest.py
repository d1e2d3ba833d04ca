"""Shared fixtures: in-memory node store and inventory fakes."""

import copy

import pytest
from kubernetes.client import V1Node, V1ObjectMeta

from node_labeler.core.errors import WriteConflictError
from node_labeler.lib.inventory.nautobot_client import DeviceRecord


def make_node(name, labels=None, resource_version="1"):
    return V1Node(metadata=V1ObjectMeta(name=name, labels=labels, resource_version=resource_version))


class FakeNodeStore:
    """Node store that hands out copies and checks resourceVersion on update."""

    def __init__(self, *nodes):
        self.nodes = {n.metadata.name: n for n in nodes}
        self.updates = []
        self.get_calls = 0

    def get(self, name):
        self.get_calls += 1
        node = self.nodes.get(name)
        return copy.deepcopy(node) if node is not None else None

    def update(self, node):
        name = node.metadata.name
        stored = self.nodes[name]
        if stored.metadata.resource_version != node.metadata.resource_version:
            raise WriteConflictError(name, "resourceVersion mismatch")
        node = copy.deepcopy(node)
        node.metadata.resource_version = str(int(stored.metadata.resource_version) + 1)
        self.nodes[name] = node
        self.updates.append(node)
        return node

    def list_names(self, label_selector=""):
        return list(self.nodes)


class FakeInventory:
    def __init__(self, record=None, error=None):
        self.record = record or DeviceRecord()
        self.error = error
        self.calls = []

    def get_device_data(self, node_name, timeout=None):
        self.calls.append((node_name, timeout))
        if self.error is not None:
            raise self.error
        return self.record


@pytest.fixture
def node_factory():
    return make_node
