"""Worker runtime that drains the outbox."""

from splitledger.platform.worker.config import DispatchConfig
from splitledger.platform.worker.dispatcher import (
    claim_ready_messages,
    process_ready_batch,
    run_dispatcher,
)

__all__ = [
    "DispatchConfig",
    "claim_ready_messages",
    "process_ready_batch",
    "run_dispatcher",
]
