"""Entrypoint to run the outbox dispatcher as a standalone worker process."""

from __future__ import annotations

import logging
import os

from splitledger import create_app
from splitledger.platform.worker.config import DispatchConfig
from splitledger.platform.worker.dispatcher import run_dispatcher


def main() -> None:
    logging.basicConfig(level=os.environ.get("WORKER_LOGLEVEL", "INFO"))
    app = create_app(os.environ.get("APP_ENV", "development"))
    with app.app_context():
        run_dispatcher(DispatchConfig.from_mapping(app.config))


if __name__ == "__main__":
    main()
