"""
constants.py
- Project-wide constants shared across the reconciler, driver and runners.
- Includes the managed label keys, requeue cadence and other tuned values.
"""

# --- Managed Node Labels ---
ZONE_LABEL = "topology.kubernetes.io/zone"
RACK_LABEL = "topology.kubernetes.io/rack"
MANAGED_LABELS = (ZONE_LABEL, RACK_LABEL)

# --- Requeue Cadence (seconds) ---
SYNCED_REQUEUE = 12 * 3600        # node already carries both labels
UNCHANGED_REQUEUE = 6 * 3600      # inventory checked, nothing to write
UPDATED_REQUEUE = 3600            # labels just written, re-validate for drift
LOOKUP_ERROR_REQUEUE = 5 * 60     # inventory unreachable or device missing
WRITE_ERROR_REQUEUE = 60          # node update rejected (conflict or API error)

# --- Driver Backoff ---
ERROR_BACKOFF_BASE = 1            # used when a failed outcome declares no delay
MAX_ERROR_BACKOFF = 3600

# --- Inventory ---
NAUTOBOT_DEVICES_PATH = "/api/dcim/devices/"
DEFAULT_HTTP_TIMEOUT = 10

# --- Config Watcher Debounce ---
DEBOUNCE_TIME = 5  # seconds between config reload triggers
