"""
label_policy.py
- Decides which managed labels a node needs from its Nautobot device record.
- Pure functions: no I/O, no mutation of the caller's label mapping.
"""

from node_labeler.core.constants import MANAGED_LABELS, RACK_LABEL, ZONE_LABEL


def desired_labels(record):
    """Map a DeviceRecord onto the managed label keys."""
    return {
        ZONE_LABEL: record.site_name,
        RACK_LABEL: record.rack_name,
    }


def diff_labels(current, record):
    """
    Return the label pairs to merge into the node.

    Per managed key: an empty candidate is skipped (never erase a value), a
    candidate equal to the current value is skipped, anything else is included.
    An empty result means no write is needed.
    """
    current = current or {}
    diff = {}
    for key, candidate in desired_labels(record).items():
        if not candidate:
            continue
        if current.get(key) == candidate:
            continue
        diff[key] = candidate
    return diff


def has_all_labels(labels):
    """True when every managed label is present with a non-empty value."""
    if not labels:
        return False
    return all(labels.get(key) for key in MANAGED_LABELS)


def merge_labels(current, diff):
    """Return a new mapping with `diff` applied on top of `current`."""
    merged = dict(current or {})
    merged.update(diff)
    return merged
