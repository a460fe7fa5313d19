"""Backpressure control based on in-flight messages and estimated memory use."""

from __future__ import annotations

import asyncio
import logging
import threading

logger = logging.getLogger(__name__)

AVG_MESSAGE_FOOTPRINT_BYTES = 20 * 1024
DEACTIVATION_RATIO = 0.70


class ResourceError(Exception):
    """Raised when resource limits call for backpressure."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class ResourceManager:
    """Tracks in-flight messages and signals backpressure near configured limits."""

    def __init__(
        self,
        max_messages_in_flight: int,
        max_memory_bytes: int,
        backpressure_threshold: float,
        memory_check_interval: float = 1.0,
    ) -> None:
        self.max_messages_in_flight = max_messages_in_flight
        self.max_memory_bytes = max_memory_bytes
        self.backpressure_threshold = backpressure_threshold
        self.memory_check_interval = memory_check_interval
        self._lock = threading.Lock()
        self._messages_in_flight = 0
        self._memory_estimate = 0
        self._backpressure_signals = 0
        logger.info(
            "ResourceManager initialized: max_messages_in_flight=%s, "
            "max_memory_bytes=%s, backpressure_threshold=%s, interval=%ss",
            max_messages_in_flight,
            max_memory_bytes,
            backpressure_threshold,
            memory_check_interval,
        )

    @property
    def messages_in_flight(self) -> int:
        with self._lock:
            return self._messages_in_flight

    @property
    def backpressure_signals(self) -> int:
        with self._lock:
            return self._backpressure_signals

    def check_resources(self) -> None:
        """Raise ResourceError, activating backpressure, if limits are reached."""
        in_flight = self.messages_in_flight
        if in_flight >= self.max_messages_in_flight:
            reason = (
                f"Max messages in flight reached "
                f"({in_flight} >= {self.max_messages_in_flight})"
            )
            self._activate(reason)
            raise ResourceError(reason)

        estimated = self.estimated_memory()
        trigger = int(self.max_memory_bytes * self.backpressure_threshold)
        if estimated >= trigger:
            reason = (
                "Estimated memory usage exceeds backpressure threshold "
                f"({estimated} bytes >= {trigger} bytes)"
            )
            self._activate(reason)
            raise ResourceError(reason)

    def start_processing(self, batch_size: int) -> None:
        """Count a batch of messages as in flight."""
        with self._lock:
            old = self._messages_in_flight
            self._messages_in_flight = old + batch_size
        logger.debug(
            "Started processing batch of size %s. Messages in flight: %s -> %s.",
            batch_size,
            old,
            old + batch_size,
        )

    def complete_processing(self, batch_size: int) -> None:
        """Release a batch and ease backpressure once usage drops far enough."""
        with self._lock:
            old = self._messages_in_flight
            self._messages_in_flight = max(0, old - batch_size)
        logger.debug(
            "Completed processing batch of size %s. Messages in flight: %s -> %s.",
            batch_size,
            old,
            max(0, old - batch_size),
        )

        current = self.messages_in_flight
        estimated = self.estimated_memory()
        memory_point = int(
            self.max_memory_bytes * self.backpressure_threshold * DEACTIVATION_RATIO
        )
        messages_point = int(self.max_messages_in_flight * DEACTIVATION_RATIO)
        if current < messages_point and estimated < memory_point:
            if self.is_backpressure_active():
                self._deactivate("Resource usage dropped below deactivation thresholds.")

    def estimated_memory(self) -> int:
        """Rough memory estimate in bytes derived from the in-flight count."""
        with self._lock:
            estimate = self._messages_in_flight * AVG_MESSAGE_FOOTPRINT_BYTES
            self._memory_estimate = estimate
        return estimate

    def is_backpressure_active(self) -> bool:
        return self.backpressure_signals > 0

    def _activate(self, reason: str) -> None:
        with self._lock:
            previous = self._backpressure_signals
            self._backpressure_signals = previous + 1
        if previous == 0:
            logger.warning("ResourceManager: Backpressure ACTIVATED. Reason: %s", reason)

    def _deactivate(self, reason: str) -> None:
        with self._lock:
            previous = self._backpressure_signals
            self._backpressure_signals = max(0, previous - 1)
        if previous == 1:
            logger.info("ResourceManager: Backpressure DEACTIVATED. Reason: %s", reason)

    async def monitor(self) -> None:
        """Log resource status periodically until cancelled."""
        logger.info(
            "ResourceManager monitoring loop started. Check interval: %ss.",
            self.memory_check_interval,
        )
        while True:
            with self._lock:
                memory = self._memory_estimate
                in_flight = self._messages_in_flight
                active = self._backpressure_signals > 0
            logger.debug(
                "ResourceManager Status: Est. Memory: %s bytes, In-Flight Msgs: %s, "
                "Backpressure: %s",
                memory,
                in_flight,
                "ACTIVE" if active else "INACTIVE",
            )
            await asyncio.sleep(self.memory_check_interval)