#!/usr/bin/env python3
"""
main.py
- Main entrypoint for the nautobot-node-labeler container.
- Launches:
    - Node controller: watch + reconcile workers labeling nodes from Nautobot
    - Config watcher: reloads labeler.yml requeue intervals
    - FastAPI server: /healthz, /readyz, /metrics, manual /sync and /reconcile
"""

import signal
from threading import Thread

import uvicorn
from fastapi import FastAPI, HTTPException
from fastapi.responses import Response
from loguru import logger

from node_labeler.core import config
from node_labeler.core.config_loader import load_yaml, preview_yaml
from node_labeler.core.kube_client import NodeStore, load_core_api
from node_labeler.lib import metrics
from node_labeler.lib.inventory.nautobot_client import NautobotClient
from node_labeler.lib.sync.reconciler import Reconciler, RequeueIntervals
from node_labeler.runner import change_detection
from node_labeler.runner.controller import NodeController


# --- FastAPI Server ---
def create_api(controller):
    api = FastAPI(title="nautobot-node-labeler")

    @api.get("/healthz")
    async def health():
        return {"status": "ok"}

    @api.get("/readyz")
    async def ready():
        if not controller.ready.is_set():
            raise HTTPException(status_code=503, detail="node watch not established")
        return {"status": "ready"}

    @api.post("/sync")
    def sync_now():
        names = controller.resync_all()
        return {"status": "triggered", "nodes": len(names)}

    @api.post("/reconcile/{node_name}")
    def reconcile_node(node_name: str):
        controller.enqueue(node_name)
        return {"status": "queued", "node": node_name}

    @api.get("/metrics")
    async def prometheus_metrics():
        body, content_type = metrics.render()
        return Response(content=body, media_type=content_type)

    return api


def start_api(api, port=config.API_PORT):
    uvicorn.run(api, host="0.0.0.0", port=port, log_level="warning")


def build_controller():
    """Wire the Nautobot client, node store and reconciler into a controller."""
    config.warn_on_placeholders()
    preview_yaml(config.LABELER_CONFIG, name="labeler.yml")
    intervals = RequeueIntervals.from_config(load_yaml(config.LABELER_CONFIG))

    core_api = load_core_api(in_cluster=config.IN_CLUSTER)
    nautobot = NautobotClient(config.NAUTOBOT_URL, config.NAUTOBOT_TOKEN, timeout=config.NAUTOBOT_TIMEOUT)
    reconciler = Reconciler(NodeStore(core_api), nautobot, intervals=intervals, dry_run=config.DRY_RUN)
    if config.DRY_RUN:
        logger.warning("[node-labeler] DRY_RUN=true — labels will be logged, not written.")
    return NodeController(reconciler, core_api, reconcile_timeout=config.RECONCILE_TIMEOUT)


def main():
    config.setup_logging()
    if config.setup_sentry():
        logger.info("[node-labeler] Sentry error reporting enabled.")

    controller = build_controller()

    def handle_exit(signum, frame):
        logger.info(f"📴 Received signal {signum}, shutting down controller...")
        controller.stop()

    signal.signal(signal.SIGINT, handle_exit)
    signal.signal(signal.SIGTERM, handle_exit)

    # --- Start background threads ---
    if config.API_ENABLED:
        Thread(target=start_api, args=(create_api(controller),), daemon=True).start()
    Thread(target=change_detection.run, args=(controller, config.LABELER_CONFIG), daemon=True).start()

    logger.info("Starting Nautobot Node Labeler Controller...")
    controller.run()


if __name__ == "__main__":
    main()
