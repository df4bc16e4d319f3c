"""
Property reconciler.

Drives one (device, property) twin: collects the reported value,
compares it with the desired value and writes the desired value back
until the device reports it.
"""
import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

from ..codecs.engine import CodecEngine
from ..codecs.values import canonicalize, check_range
from ..config import ReconcileSettings
from ..exceptions import ConfigError, DecodeError, EncodeError
from ..messages import TwinPropertyStatus
from ..models.resolver import ResolvedVisitor
from ..transport.router import ReceiveRouter
from .twin_state import PropertyTwin, TwinPhase

logger = logging.getLogger(__name__)

ReportCallback = Callable[[PropertyTwin], Awaitable[None]]


class PropertyReconciler:
    """
    Reconciles one property of one device.

    All state changes happen under a per-property lock, so a desired
    update never interleaves with a collection cycle.
    """

    def __init__(
        self,
        resolved: ResolvedVisitor,
        engine: CodecEngine,
        router: ReceiveRouter,
        settings: Optional[ReconcileSettings] = None,
        on_report: Optional[ReportCallback] = None,
    ):
        """
        Initialize the reconciler.

        Args:
            resolved: Visitor bound at admission.
            engine: Codec engine.
            router: Request/response access to the transport.
            settings: Retry and backoff settings.
            on_report: Called with the twin on every report.
        """
        self.resolved = resolved
        self.engine = engine
        self.router = router
        self.settings = settings or ReconcileSettings()
        self._on_report = on_report

        self.twin = PropertyTwin(
            device_id=resolved.device_id,
            property_name=resolved.property_name,
            data_type=resolved.definition.data_type,
            data_topic=resolved.data_topic,
        )
        self._lock = asyncio.Lock()

    @property
    def device_id(self) -> str:
        return self.resolved.device_id

    @property
    def property_name(self) -> str:
        return self.resolved.property_name

    @property
    def retry_times(self) -> int:
        return self.resolved.collect_retry_times

    def backoff(self, attempt: int) -> float:
        """Delay before retry number ``attempt`` (0 based)."""
        delay = self.settings.retry_delay * (self.settings.backoff_multiplier ** attempt)
        return min(delay, self.settings.max_backoff)

    # ------------------------------------------------------------------
    # Desired values
    # ------------------------------------------------------------------

    async def set_desired(self, value: Any, timestamp: Optional[int] = None) -> str:
        """
        Set the desired value of the property.

        Returns:
            The canonical form of the accepted value.

        Raises:
            ConfigError: If the property does not take desired values
                or the value is invalid for it. The twin is unchanged.
        """
        definition = self.resolved.definition
        if definition.is_read_only:
            raise ConfigError(
                f"Property '{self.property_name}' of {self.device_id} is ReadOnly"
            )
        if not self.resolved.accepts_desired:
            raise ConfigError(
                f"Property '{self.property_name}' of {self.device_id} is a data property"
            )

        try:
            canonical = canonicalize(value, definition.data_type)
            check_range(canonical, definition)
        except ValueError as e:
            raise ConfigError(
                f"Invalid desired value for '{self.property_name}': {e}",
                details={"value": str(value)},
            )

        async with self._lock:
            self.twin.set_desired(canonical, timestamp)

        logger.info(
            f"Desired {self.device_id}/{self.property_name} = {canonical}"
        )
        return canonical

    # ------------------------------------------------------------------
    # Collection and convergence
    # ------------------------------------------------------------------

    async def run_cycle(self) -> PropertyTwin:
        """
        Run one collection cycle.

        Decode failures are retried with exponential backoff; when
        retries run out the twin is marked Degraded. After a
        successful collection a pending desired value is written.

        Raises:
            ConfigError: If the visitor cannot be used at all. The twin
                is marked Degraded first.
            TransportError: If the transport cannot deliver. Not counted
                as a failed attempt.
        """
        async with self._lock:
            try:
                collected = await self._collect()
                if collected and self.twin.needs_write:
                    await self._converge()
            except ConfigError as e:
                self.twin.mark_degraded(f"configuration error: {e.message}")
                logger.error(f"{self.device_id}/{self.property_name} disabled: {e}")
                raise
            return self.twin

    async def mark_offline(self, offline_for: float) -> None:
        """Degrade the property after the transport stayed offline too long."""
        async with self._lock:
            # Exhausted writes keep their own cause
            if not self.twin.writes_exhausted:
                self.twin.mark_degraded(f"transport offline for {offline_for:g}s")

    async def _collect(self) -> bool:
        resolved = self.resolved
        data_type = resolved.definition.data_type

        for attempt in range(self.retry_times + 1):
            try:
                raw = await self.router.read_property(
                    self.device_id, self.property_name, resolved.collect_timeout
                )
                value = self.engine.decode(
                    resolved.protocol, resolved.visitor.config, raw, data_type
                )
                try:
                    canonical = canonicalize(value, data_type)
                    check_range(canonical, resolved.definition)
                except ValueError as e:
                    raise DecodeError(f"Reported value rejected: {e}")
            except DecodeError as e:
                self.twin.record_collect_failure(e.message)
                if attempt < self.retry_times:
                    delay = self.backoff(attempt)
                    logger.debug(
                        f"Collect {self.device_id}/{self.property_name} failed "
                        f"({e.message}), retry in {delay:.2f}s"
                    )
                    await asyncio.sleep(delay)
                    continue
                self.twin.mark_degraded(
                    f"collection failed after {attempt + 1} attempts: {e.message}"
                )
                logger.warning(
                    f"{self.device_id}/{self.property_name} degraded: {self.twin.last_error}"
                )
                return False

            self.twin.record_reported(canonical)
            return True

        return False

    async def _converge(self) -> None:
        twin = self.twin
        if twin.write_attempts > self.retry_times:
            twin.mark_degraded(
                f"desired value {twin.desired.value} not confirmed after "
                f"{twin.write_attempts} writes",
                writes_exhausted=True,
            )
            logger.warning(f"{self.device_id}/{self.property_name} degraded: {twin.last_error}")
            return

        resolved = self.resolved
        for attempt in range(self.retry_times + 1):
            try:
                raw = self.engine.encode(
                    resolved.protocol,
                    resolved.visitor.config,
                    twin.desired.value,
                    resolved.definition.data_type,
                )
                await self.router.write_property(
                    self.device_id, self.property_name, raw, resolved.collect_timeout
                )
            except EncodeError as e:
                twin.record_write_failure(e.message)
                if attempt < self.retry_times:
                    await asyncio.sleep(self.backoff(attempt))
                    continue
                twin.mark_degraded(
                    f"write failed after {attempt + 1} attempts: {e.message}",
                    writes_exhausted=True,
                )
                logger.warning(
                    f"{self.device_id}/{self.property_name} degraded: {twin.last_error}"
                )
                return

            twin.record_write_sent()
            logger.debug(
                f"Wrote {twin.desired.value} to {self.device_id}/{self.property_name}"
            )
            return

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    async def push_report(self) -> TwinPropertyStatus:
        """Publish the current snapshot regardless of change."""
        self.twin.mark_reported()
        if self._on_report:
            try:
                await self._on_report(self.twin)
            except Exception as e:
                logger.error(f"Error in report callback: {e}")
        return self.twin.to_status()

    def snapshot(self) -> TwinPropertyStatus:
        return self.twin.to_status()

    @property
    def phase(self) -> TwinPhase:
        return self.twin.phase
