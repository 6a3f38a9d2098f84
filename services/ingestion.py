# services/ingestion.py
import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from ai_providers.base import FileHandle, FileState, ProviderClient
from ai_providers.errors import (
    ProcessingFailedError, ProcessingTimeoutError, ProviderError,
    ProviderTransportError, ProviderUnavailableError,
)
from services.deadline import Deadline

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PollPolicy:
    interval: float = 5.0
    # consecutive transport failures tolerated per status check
    max_transport_retries: int = 3
    retry_delay: float = 1.0
    # own cap, used together with any caller deadline (earliest wins)
    timeout: Optional[float] = None


class FileIngestionCoordinator:
    """
    Upload a document and wait until the backend has finished preparing it.

    Everything runs against the one client passed in: a file handle is only
    resolvable by the account that created it.
    """

    def __init__(self, policy: PollPolicy = None,
                 clock: Callable[[], float] = time.monotonic,
                 sleep: Callable[[float], None] = time.sleep):
        self.policy = policy or PollPolicy()
        self.clock = clock
        self.sleep = sleep

    def ingest(self, data: bytes, mime_type: str, display_name: str,
               client: ProviderClient, deadline: Deadline = None) -> FileHandle:
        own = Deadline(self.policy.timeout, self.clock) if self.policy.timeout else None
        deadline = Deadline.earliest(deadline, own)
        if deadline is not None:
            deadline.check("upload")

        try:
            handle = client.upload(data, mime_type, display_name)
        except ProviderTransportError as e:
            raise ProviderUnavailableError(f"Upload to {client.name} failed: {e.message}",
                                           e.context) from e
        logger.info("Uploaded %s to %s as %s", display_name, client.name, handle.id)

        try:
            return self._wait_until_ready(handle, client, deadline)
        except ProviderError:
            self._cleanup(handle, client)
            raise

    def _wait_until_ready(self, handle: FileHandle, client: ProviderClient,
                          deadline: Optional[Deadline]) -> FileHandle:
        state = self._check_status(handle, client, deadline)
        polls = 0
        while not state.terminal:
            wait = self.policy.interval
            if deadline is not None:
                wait = min(wait, deadline.remaining())
                if wait <= 0:
                    raise self._timeout(handle, polls)
            logger.info("File %s still %s... waiting %.1fs", handle.id, state.value, wait)
            self.sleep(wait)
            if deadline is not None and deadline.expired():
                raise self._timeout(handle, polls)
            polls += 1
            state = self._check_status(handle, client, deadline)

        if state == FileState.FAILED:
            raise ProcessingFailedError(f"File {handle.id} processing failed on {client.name}",
                                        {"file": handle.id, "provider": client.name})

        logger.info("File %s ready after %d poll(s)", handle.id, polls)
        return handle.with_state(FileState.READY)

    def _check_status(self, handle: FileHandle, client: ProviderClient,
                      deadline: Optional[Deadline]) -> FileState:
        failures = 0
        while True:
            try:
                return client.get_status(handle)
            except ProviderTransportError as e:
                failures += 1
                if failures > self.policy.max_transport_retries:
                    raise ProviderUnavailableError(
                        f"Status check for {handle.id} failed {failures} times: {e.message}",
                        {"file": handle.id, "provider": client.name},
                    ) from e
                logger.warning("Status check for %s failed (%d/%d): %s",
                               handle.id, failures, self.policy.max_transport_retries, e.message)
                if deadline is not None and deadline.remaining() <= self.policy.retry_delay:
                    raise self._timeout(handle, failures) from e
                self.sleep(self.policy.retry_delay)

    def _timeout(self, handle: FileHandle, polls: int) -> ProcessingTimeoutError:
        return ProcessingTimeoutError(f"File {handle.id} was not ready before the deadline",
                                      {"file": handle.id, "polls": polls})

    def _cleanup(self, handle: FileHandle, client: ProviderClient) -> None:
        try:
            client.delete_file(handle)
            logger.info("Removed unfinished upload %s", handle.id)
        except Exception as e:
            logger.warning("Could not remove %s from %s: %s", handle.id, client.name, e)
