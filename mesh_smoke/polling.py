# /*
# Copyright 2026 The Mesh Smoke Authors.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# */

"""Cancellable poll loop shared by every wait in the providers."""

from __future__ import annotations

import threading
import time
from collections.abc import Callable

from tenacity import RetryError, Retrying, retry_if_result, stop_after_delay, stop_when_event_set, wait_fixed

from mesh_smoke import logger
from mesh_smoke.errors import OperationCancelled, StateTimeoutError


def check_cancelled(cancel: threading.Event | None, step: str) -> None:
    """Raise if the caller has cancelled the running operation.

    Args:
        cancel: Cancellation event, or None when the operation is not cancellable.
        step: Name of the step about to start, used in the error message.

    Raises:
        OperationCancelled: If *cancel* is set.
    """
    if cancel is not None and cancel.is_set():
        raise OperationCancelled(f"operation cancelled before {step}")


def poll_until(
    check: Callable[[], bool],
    *,
    resource: str,
    interval: float,
    timeout: float,
    cancel: threading.Event | None = None,
) -> None:
    """Call *check* every *interval* seconds until it returns True.

    Errors raised by *check* propagate immediately; callers translate
    tolerated conditions (such as not-found during deletion) into a True result.

    Args:
        check: Describe-and-test callable; True means the terminal state was reached.
        resource: Human readable resource name for error messages.
        interval: Seconds between checks.
        timeout: Deadline in seconds for the whole wait.
        cancel: Cancellation event; setting it aborts the wait at the next tick.

    Raises:
        OperationCancelled: If *cancel* is set before the terminal state is reached.
        StateTimeoutError: If the deadline passes first.
    """
    check_cancelled(cancel, f"waiting for {resource}")

    stop = stop_after_delay(timeout)
    sleep: Callable[[float], object] = time.sleep
    if cancel is not None:
        stop = stop | stop_when_event_set(cancel)
        sleep = cancel.wait

    retrying = Retrying(
        stop=stop,
        wait=wait_fixed(interval),
        retry=retry_if_result(lambda done: not done),
        sleep=sleep,
    )
    logger.debug("Waiting for %s (interval=%ss, timeout=%ss)", resource, interval, timeout)
    try:
        retrying(check)
    except RetryError as err:
        if cancel is not None and cancel.is_set():
            raise OperationCancelled(f"operation cancelled while waiting for {resource}") from err
        raise StateTimeoutError(resource, timeout) from err
