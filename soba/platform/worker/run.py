"""CLI entrypoint to run the outbox sync worker."""

from __future__ import annotations

import logging
import os
import sys

from soba import create_app
from soba.platform.engines.registry import build_default_registry
from soba.platform.sync.engine import SyncEngine
from soba.platform.worker.config import WorkerConfig
from soba.platform.worker.dispatcher import StoreUnavailableError, ping_store, run_worker

logger = logging.getLogger(__name__)


def build_sync_engine(config: WorkerConfig, environ=None) -> SyncEngine:
    return SyncEngine(
        build_default_registry(environ),
        system_actor_id=config.system_actor_id,
        adapter_timeout=config.adapter_timeout,
    )


def main() -> None:
    logging.basicConfig(level=os.environ.get("WORKER_LOGLEVEL", "INFO"))
    env = os.environ.get("APP_ENV", "development")
    app = create_app(env)
    config = WorkerConfig.from_env()
    with app.app_context():
        try:
            ping_store()
            run_worker(build_sync_engine(config), config)
        except StoreUnavailableError:
            logger.exception("Outbox worker cannot reach the store, exiting")
            sys.exit(1)


if __name__ == "__main__":
    main()
