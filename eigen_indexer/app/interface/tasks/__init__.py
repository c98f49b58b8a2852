from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any

from .sync_streams_task import (
    sync_all_task,
    sync_deposits_task,
    sync_operator_shares_task,
    sync_pods_task,
    sync_withdrawals_task,
)

TaskFn = Callable[..., Awaitable[Any]]

TASKS: dict[str, TaskFn] = {
    "sync__pods_task": sync_pods_task,
    "sync__operator_shares_task": sync_operator_shares_task,
    "sync__deposits_task": sync_deposits_task,
    "sync__withdrawals_task": sync_withdrawals_task,
    "sync__all_task": sync_all_task,
}
