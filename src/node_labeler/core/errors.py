"""
errors.py
- Exception hierarchy shared by the inventory client, node store and reconciler.
- Every error here is recoverable: the reconciler turns it into a requeue.
"""


class NodeLabelerError(Exception):
    """Base class for all node-labeler failures."""


# --- Inventory Lookup ---

class InventoryLookupError(NodeLabelerError):
    """A device lookup against Nautobot did not produce a record."""


class TransportError(InventoryLookupError):
    """DNS, connect or timeout failure talking to Nautobot."""

    def __init__(self, cause):
        self.cause = cause
        super().__init__(f"failed to contact Nautobot: {cause}")


class UpstreamStatusError(InventoryLookupError):
    """Nautobot answered with a non-2xx status."""

    def __init__(self, code):
        self.code = code
        super().__init__(f"Nautobot returned non-2xx status: {code}")


class DecodeError(InventoryLookupError):
    """Response body is not the expected JSON envelope."""

    def __init__(self, cause):
        self.cause = cause
        super().__init__(f"failed to parse Nautobot response: {cause}")


class DeviceNotFoundError(InventoryLookupError):
    """Envelope parsed fine but its result list was empty."""

    def __init__(self, key):
        self.key = key
        super().__init__(f"no device found in Nautobot for name: {key}")


# --- Node Store ---

class NodeReadError(NodeLabelerError):
    """Reading the node failed for a reason other than 404."""

    def __init__(self, name, cause):
        self.name = name
        self.cause = cause
        super().__init__(f"failed to read node {name}: {cause}")


class NodeWriteError(NodeLabelerError):
    """Submitting the updated node was rejected."""

    def __init__(self, name, cause):
        self.name = name
        self.cause = cause
        super().__init__(f"failed to update node {name}: {cause}")


class WriteConflictError(NodeWriteError):
    """The node changed since it was read (resourceVersion mismatch)."""


# --- Invocation ---

class InvocationCancelled(NodeLabelerError):
    """The reconcile context was cancelled or ran past its deadline."""
