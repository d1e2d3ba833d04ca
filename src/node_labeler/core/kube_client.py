"""
kube_client.py
- Loads Kubernetes credentials (in-cluster first, kubeconfig as fallback).
- NodeStore wraps the read-modify-write calls the reconciler needs for one node.
"""

import urllib3
from kubernetes import client, config
from kubernetes.client.rest import ApiException
from loguru import logger

from node_labeler.core.errors import NodeReadError, NodeWriteError, WriteConflictError


def load_core_api(in_cluster=True):
    """
    Build a CoreV1Api from the ServiceAccount token, or the local kubeconfig
    when running outside a cluster.
    """
    if in_cluster:
        try:
            config.load_incluster_config()
            logger.info("[kube] Loaded in-cluster Kubernetes config")
            return client.CoreV1Api()
        except config.ConfigException as e:
            logger.warning(f"[kube] In-cluster config unavailable ({e}), falling back to kubeconfig")
    config.load_kube_config()
    logger.info("[kube] Loaded kubeconfig")
    return client.CoreV1Api()


class NodeStore:
    """Get/update access to a single node object."""

    def __init__(self, core_api):
        self.core_api = core_api

    def get(self, name):
        """
        Read the current node object.

        Returns:
            V1Node or None: None when the node no longer exists.
        """
        try:
            return self.core_api.read_node(name)
        except ApiException as e:
            if e.status == 404:
                return None
            raise NodeReadError(name, e) from e
        except urllib3.exceptions.HTTPError as e:
            raise NodeReadError(name, e) from e

    def update(self, node):
        """
        Submit the full node object. The API server rejects the write with 409
        when metadata.resourceVersion is stale.
        """
        name = node.metadata.name
        try:
            return self.core_api.replace_node(name, node)
        except ApiException as e:
            if e.status == 409:
                raise WriteConflictError(name, e) from e
            raise NodeWriteError(name, e) from e
        except urllib3.exceptions.HTTPError as e:
            raise NodeWriteError(name, e) from e

    def list_names(self, label_selector=""):
        """Return the names of all nodes matching the selector."""
        nodes = self.core_api.list_node(label_selector=label_selector)
        return [n.metadata.name for n in nodes.items]
