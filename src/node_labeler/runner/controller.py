#!/usr/bin/env python3
"""
controller.py
- Watch/dispatch driver for the node labeler.
- Streams Node events from the API server into a WorkQueue and runs worker
  threads that call the Reconciler, honoring each outcome's requeue delay.
- Outcomes carrying an error get exponential per-node backoff on top of the
  declared delay.
"""

import threading

import urllib3
from kubernetes import watch
from kubernetes.client.rest import ApiException
from loguru import logger
from tenacity import retry, retry_if_exception_type, wait_exponential

from node_labeler.core import config
from node_labeler.core.constants import ERROR_BACKOFF_BASE
from node_labeler.core.retry_state import RetryState
from node_labeler.lib import metrics
from node_labeler.lib.sync.label_policy import has_all_labels
from node_labeler.lib.sync.reconciler import ReconcileContext
from node_labeler.lib.sync.work_queue import WorkQueue


class WatchExpired(Exception):
    """The watch resourceVersion is too old (HTTP 410); a relist is required."""


def _controller_stopping(retry_state):
    # tenacity passes the bound method arguments; args[0] is the controller
    return retry_state.args[0].stop_event.is_set()


def should_enqueue(event_type, node):
    """
    Filter watch events down to the ones that can change a reconcile decision.

    ADDED always counts (startup list, new nodes). MODIFIED only counts when
    the node is missing a managed label; fully labeled nodes are already on
    their periodic requeue.
    """
    if event_type == "ADDED":
        return True
    if event_type == "MODIFIED":
        labels = (node.metadata.labels if node.metadata else None) or {}
        return not has_all_labels(labels)
    return False


class NodeController:
    def __init__(
        self,
        reconciler,
        core_api,
        workers=config.WORKERS,
        label_selector=config.NODE_LABEL_SELECTOR,
        watch_timeout=config.WATCH_TIMEOUT_SECONDS,
        reconcile_timeout=config.RECONCILE_TIMEOUT,
        max_error_backoff=config.MAX_ERROR_BACKOFF,
        queue=None,
    ):
        self.reconciler = reconciler
        self.core_api = core_api
        self.workers = workers
        self.label_selector = label_selector
        self.watch_timeout = watch_timeout
        self.reconcile_timeout = reconcile_timeout
        self.queue = queue or WorkQueue()
        self.retries = RetryState(max_error_backoff)
        self.stop_event = threading.Event()
        self.ready = threading.Event()
        self._threads = []
        self._watcher = None
        self._watcher_lock = threading.Lock()

    # --- Enqueue helpers ---

    def enqueue(self, name):
        self.queue.add(name)
        metrics.queue_depth.set(len(self.queue))

    def resync_all(self):
        """Queue every node matching the selector for an immediate reconcile."""
        nodes = self.core_api.list_node(label_selector=self.label_selector)
        names = [n.metadata.name for n in nodes.items]
        for name in names:
            self.enqueue(name)
        logger.info(f"[controller] Queued {len(names)} node(s) for resync.")
        return names

    # --- Outcome handling ---

    def handle_outcome(self, name, outcome):
        """Schedule the next invocation for `name` according to `outcome`."""
        if outcome.error is None:
            self.retries.clear(name)
            if outcome.requeue_after is None:
                self.queue.forget(name)
                return None
            self.queue.add_after(name, outcome.requeue_after)
            return outcome.requeue_after
        return self._backoff(name, outcome.requeue_after, outcome.error)

    def _backoff(self, name, declared, error):
        failures = self.retries.record_failure(name)
        base = declared if declared else ERROR_BACKOFF_BASE
        delay = self.retries.backoff(base, failures)
        logger.warning(f"[controller] {name} failed ({failures} in a row): {error}. Retrying in {delay:.0f}s.")
        self.queue.add_after(name, delay)
        return delay

    def process_next(self, timeout=None):
        """
        Take one key from the queue and reconcile it.

        Returns:
            bool: False when the queue is shut down or the wait timed out.
        """
        name = self.queue.get(timeout=timeout)
        if name is None:
            return False
        metrics.queue_depth.set(len(self.queue))
        try:
            ctx = ReconcileContext(self.stop_event, self.reconcile_timeout)
            try:
                outcome = self.reconciler.reconcile(name, ctx)
            except Exception as e:
                logger.exception(f"[controller] Unexpected error reconciling {name}")
                self._backoff(name, None, e)
                return True
            if self.stop_event.is_set():
                return True
            self.handle_outcome(name, outcome)
        finally:
            self.queue.done(name)
        return True

    def _worker(self):
        while not self.stop_event.is_set():
            if not self.process_next():
                break

    # --- Watch loop ---

    @retry(
        retry=retry_if_exception_type((ApiException, urllib3.exceptions.HTTPError)),
        stop=_controller_stopping,
        wait=wait_exponential(multiplier=1, min=2, max=60),
        reraise=True,
    )
    def _list_nodes(self):
        nodes = self.core_api.list_node(label_selector=self.label_selector)
        for node in nodes.items:
            self.enqueue(node.metadata.name)
        logger.info(f"[controller] Listed {len(nodes.items)} node(s).")
        return nodes.metadata.resource_version

    def _stream(self, resource_version):
        """Consume one watch session; returns the last seen resourceVersion."""
        w = watch.Watch()
        with self._watcher_lock:
            self._watcher = w
        try:
            for event in w.stream(
                self.core_api.list_node,
                label_selector=self.label_selector,
                resource_version=resource_version,
                timeout_seconds=self.watch_timeout,
            ):
                if self.stop_event.is_set():
                    break
                event_type = event["type"]
                if event_type == "ERROR":
                    raw = event.get("raw_object") or {}
                    if raw.get("code") == 410:
                        raise WatchExpired(raw.get("message", "resource version expired"))
                    logger.warning(f"[controller] Watch error event: {raw}")
                    continue

                node = event["object"]
                name = node.metadata.name
                resource_version = node.metadata.resource_version
                if event_type == "DELETED":
                    logger.debug(f"[controller] Node {name} deleted")
                    self.queue.forget(name)
                    self.retries.clear(name)
                elif should_enqueue(event_type, node):
                    logger.debug(f"[controller] {event_type} {name} → queued")
                    self.enqueue(name)
        finally:
            with self._watcher_lock:
                self._watcher = None
        return resource_version

    @retry(
        retry=retry_if_exception_type((ApiException, urllib3.exceptions.HTTPError)),
        stop=_controller_stopping,
        wait=wait_exponential(multiplier=1, min=2, max=60),
        reraise=True,
    )
    def _watch_once(self, resource_version):
        if self.stop_event.is_set():
            return resource_version
        try:
            return self._stream(resource_version)
        except ApiException as e:
            if e.status == 410:
                raise WatchExpired(str(e)) from e
            metrics.watch_restarts_total.inc()
            logger.warning(f"[controller] Watch stream failed: {e}. Reconnecting...")
            raise

    def watch_nodes(self):
        resource_version = self._list_nodes()
        self.ready.set()
        while not self.stop_event.is_set():
            try:
                resource_version = self._watch_once(resource_version)
            except WatchExpired as e:
                logger.info(f"[controller] Watch expired ({e}); relisting nodes.")
                metrics.watch_restarts_total.inc()
                resource_version = self._list_nodes()

    # --- Lifecycle ---

    def start(self):
        logger.info(f"[controller] Starting {self.workers} worker(s), selector='{self.label_selector or '*'}'")
        for i in range(self.workers):
            t = threading.Thread(target=self._worker, name=f"reconcile-{i}", daemon=True)
            t.start()
            self._threads.append(t)
        t = threading.Thread(target=self._run_watch, name="node-watch", daemon=True)
        t.start()
        self._threads.append(t)

    def _run_watch(self):
        try:
            self.watch_nodes()
        except Exception as e:
            if self.stop_event.is_set():
                logger.info(f"[controller] Node watch ended during shutdown: {e}")
                return
            logger.exception("[controller] Node watch crashed; stopping controller.")
            self.stop()

    def stop(self):
        self.stop_event.set()
        self.queue.shutdown()
        with self._watcher_lock:
            if self._watcher is not None:
                self._watcher.stop()

    def run(self):
        """Start workers and the watch, then block until stop() is called."""
        self.start()
        self.stop_event.wait()
        for t in self._threads:
            t.join(timeout=5)
        logger.info("[controller] Stopped.")
