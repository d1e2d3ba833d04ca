#!/usr/bin/env python3
"""
entrypoint.py
- Manual entrypoint for the node labeler, e.g. via `kubectl exec`.
- Usage:
    node-labeler run                 Start the controller (same as main.py)
    node-labeler sync                Reconcile every node once and exit
    node-labeler reconcile <node>    Reconcile a single node once
    node-labeler lookup <node>       Show what Nautobot returns for a node
"""

import sys

from loguru import logger

from node_labeler import main as controller_main
from node_labeler.core import config
from node_labeler.core.errors import InventoryLookupError
from node_labeler.lib.inventory.nautobot_client import NautobotClient, lookup_key


def usage():
    print("Usage: node-labeler <command> [node]")
    print("Available commands:")
    print("  run                Start the watch/reconcile controller")
    print("  sync               Reconcile every node once and exit")
    print("  reconcile <node>   Reconcile one node and print the outcome")
    print("  lookup <node>      Query Nautobot for a node's site and rack")
    sys.exit(1)


def format_outcome(name, outcome):
    delay = "none" if outcome.requeue_after is None else f"{outcome.requeue_after:.0f}s"
    line = f"{name}: updated={outcome.updated} requeue_after={delay}"
    if outcome.error is not None:
        line += f" error={outcome.error}"
    return line


def reconcile_once(names=None):
    """
    Run the reconciler synchronously for the given nodes (all nodes when None).

    Returns:
        int: Exit code, 1 if any node finished with an error.
    """
    controller = controller_main.build_controller()
    if names is None:
        names = controller.reconciler.store.list_names(controller.label_selector)
    failed = 0
    for name in names:
        outcome = controller.reconciler.reconcile(name)
        print(format_outcome(name, outcome))
        if outcome.error is not None:
            failed += 1
    return 1 if failed else 0


def lookup(node_name):
    client = NautobotClient(config.NAUTOBOT_URL, config.NAUTOBOT_TOKEN, timeout=config.NAUTOBOT_TIMEOUT)
    try:
        record = client.get_device_data(node_name)
    except InventoryLookupError as e:
        print(f"❌ {lookup_key(node_name)}: {e}")
        return 1
    print(f"{lookup_key(node_name)}: site='{record.site_name}' rack='{record.rack_name}'")
    return 0


def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv
    if not argv:
        usage()

    command, args = argv[0], argv[1:]
    if command == "run":
        controller_main.main()
        return 0

    config.setup_logging()
    if command == "sync" and not args:
        return reconcile_once()
    if command == "reconcile" and len(args) == 1:
        return reconcile_once(args)
    if command == "lookup" and len(args) == 1:
        return lookup(args[0])

    logger.error(f"Unknown command or wrong arguments: {' '.join(argv)}")
    usage()


if __name__ == "__main__":
    sys.exit(main())
