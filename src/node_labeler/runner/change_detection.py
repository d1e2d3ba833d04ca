#!/usr/bin/env python3
"""
change_detection.py
- Watches labeler.yml for modifications.
- Reloads requeue intervals into the running Reconciler and queues a full resync.
- Includes debouncing to avoid rapid repeated triggers.
"""

import time
from pathlib import Path
from threading import Lock

from loguru import logger
from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from node_labeler.core.config_loader import load_yaml
from node_labeler.core.constants import DEBOUNCE_TIME
from node_labeler.lib.sync.reconciler import RequeueIntervals


def reload_config(controller, path):
    """Apply labeler.yml to a running controller and queue every node."""
    intervals = RequeueIntervals.from_config(load_yaml(str(path)))
    controller.reconciler.intervals = intervals
    logger.info(f"[watcher] Requeue intervals now {intervals}")
    controller.resync_all()
    return intervals


class ConfigChangeHandler(FileSystemEventHandler):
    def __init__(self, path, on_change, debounce=DEBOUNCE_TIME, clock=time.monotonic):
        super().__init__()
        self.path = Path(path).resolve()
        self.on_change = on_change
        self.debounce = debounce
        self.clock = clock
        self._last_trigger = None
        self._lock = Lock()

    def _matches(self, event):
        paths = [getattr(event, "src_path", None), getattr(event, "dest_path", None)]
        for p in paths:
            if not p:
                continue
            p = Path(p)
            # ConfigMap volumes publish updates by swapping the ..data symlink
            if p.name == "..data" or p.resolve() == self.path:
                return True
        return False

    def on_any_event(self, event):
        if event.event_type not in ("modified", "created", "moved"):
            return
        if event.is_directory or not self._matches(event):
            return

        now = self.clock()
        with self._lock:
            if self._last_trigger is not None and now - self._last_trigger < self.debounce:
                logger.debug(f"[watcher] Debounced {self.path.name} (last trigger {now - self._last_trigger:.2f}s ago)")
                return
            self._last_trigger = now

        logger.info(f"[watcher] Detected change in {self.path.name}, reloading.")
        try:
            self.on_change()
        except Exception as e:
            logger.error(f"[watcher] Failed to handle {self.path.name}: {e}")


def run(controller, path):
    """Block watching `path` until the controller stops."""
    path = Path(path)
    if not path.parent.exists():
        logger.info(f"[watcher] {path.parent} does not exist; config reload disabled.")
        return

    handler = ConfigChangeHandler(path, lambda: reload_config(controller, path))
    observer = Observer()
    observer.schedule(handler, str(path.parent), recursive=False)
    observer.start()
    logger.info(f"[watcher] Watching {path} for changes...")
    try:
        controller.stop_event.wait()
    finally:
        observer.stop()
        observer.join()
