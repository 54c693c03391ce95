# src/pagehealth/controllers/health_check_controller.py
import asyncio
import logging
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence

from pagehealth.auditor.core import ValidatorBase, error_result
from pagehealth.auditor.registry import ValidatorRegistry
from pagehealth.core.managers.config_manager import ConfigManager, config_manager
from pagehealth.core.managers.progress_manager import ProgressManager
from pagehealth.core.utils.configure_logging import configure_from_settings
from pagehealth.core.utils.run_timers import RunTimers
from pagehealth.crawler.services.http_request_service import HttpRequestService
from pagehealth.crawler.services.snapshot_service import HttpSnapshotService, SnapshotProvider
from pagehealth.crawler.utils.url_utils import UrlUtils
from pagehealth.exceptions import AcquisitionError, InvalidUrlError
from pagehealth.model import PageSnapshot, ResultStatus, ValidatorDescriptor, ValidatorResult

logger = logging.getLogger(__name__)

ValidatorFactory = Callable[[ValidatorDescriptor], ValidatorBase]

DEFAULT_TIMEOUT = 90.0


class RunState(str, Enum):
    IDLE = "idle"
    ACQUIRING = "acquiring"
    FAN_OUT = "fan_out"
    COLLECTING = "collecting"
    DONE = "done"


class HealthCheckController:
    """
    Runs every enabled validator concurrently against one shared snapshot.

    Lifecycle per run: IDLE -> ACQUIRING -> FAN_OUT -> COLLECTING -> DONE.
    Acquisition failures abort the run (AcquisitionError propagates and no
    validator starts). After that, failures are isolated: an exception in one
    validator becomes an error result for that validator only, and validators
    still running at the run timeout get a synthesized "timed out" result.
    Results keep descriptor order.
    """

    def __init__(
            self,
            descriptors: Sequence[ValidatorDescriptor],
            validators_factory: ValidatorFactory,
            snapshot_provider: SnapshotProvider,
            timeout: float = DEFAULT_TIMEOUT,
            show_progress: bool = False
    ):
        self.descriptors = list(descriptors)
        self.validators_factory = validators_factory
        self.snapshot_provider = snapshot_provider
        self.timeout = float(timeout)
        self.show_progress = show_progress

        self.state = RunState.IDLE
        self.timer = RunTimers()

    def _transition(self, state: RunState):
        logger.debug("HealthCheckController: %s -> %s", self.state.value, state.value)
        self.state = state

    async def run(self, url: str) -> List[ValidatorResult]:
        """Acquires `url` once and returns one result per enabled validator."""
        self.state = RunState.IDLE
        url = (url or "").strip()
        if not UrlUtils.is_valid_target(url):
            raise InvalidUrlError(url)

        self._transition(RunState.ACQUIRING)
        try:
            snapshot = await self.snapshot_provider.acquire(url)
        except AcquisitionError as e:
            logger.error("Acquisition failed for %s: %s", url, e)
            self._transition(RunState.DONE)
            raise

        return await self.run_snapshot(snapshot)

    async def run_snapshot(self, snapshot: PageSnapshot) -> List[ValidatorResult]:
        """Fans out over an already acquired snapshot."""
        enabled = [d for d in self.descriptors if d.enabled]
        results: Dict[str, ValidatorResult] = {}
        self.timer.start()

        self._transition(RunState.FAN_OUT)
        tasks: Dict[asyncio.Task, ValidatorDescriptor] = {}
        for descriptor in enabled:
            try:
                validator = self.validators_factory(descriptor)
            except Exception as e:
                logger.error("Could not build validator '%s': %s", descriptor.id, e)
                results[descriptor.id] = error_result(descriptor, str(e) or e.__class__.__name__)
                continue
            task = asyncio.create_task(self._run_one(validator, snapshot), name=f"validator-{descriptor.id}")
            tasks[task] = descriptor

        self._transition(RunState.COLLECTING)
        progress = ProgressManager(len(enabled), desc="Health check") if self.show_progress else None
        try:
            await self._collect(tasks, results, progress)
        finally:
            if progress:
                progress.close()

        self.timer.stop()
        self._transition(RunState.DONE)

        failed = sum(1 for r in results.values() if r.status == ResultStatus.ERROR.value)
        logger.info("Health check of %s finished in %.2fs: %d results, %d errors",
                    snapshot.source_url, self.timer.duration, len(results), failed)
        return [results[d.id] for d in enabled]

    async def _collect(
            self,
            tasks: Dict[asyncio.Task, ValidatorDescriptor],
            results: Dict[str, ValidatorResult],
            progress: Optional[ProgressManager]
    ):
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.timeout
        pending = set(tasks)

        while pending:
            remaining = deadline - loop.time()
            if remaining <= 0:
                break
            done, pending = await asyncio.wait(pending, timeout=remaining, return_when=asyncio.FIRST_COMPLETED)
            for task in done:
                descriptor = tasks[task]
                result = task.result()
                results[descriptor.id] = result
                elapsed = self.timer.lap(descriptor.id)
                logger.debug("Validator '%s' finished after %sms", descriptor.id, elapsed)
                if progress:
                    progress.advance(descriptor.id, failed=result.status == ResultStatus.ERROR.value)

        if not pending:
            return

        for task in pending:
            task.cancel()
            descriptor = tasks[task]
            logger.warning("Validator '%s' timed out after %ss", descriptor.id, self.timeout)
            results[descriptor.id] = error_result(descriptor, f"{descriptor.label} timed out after {self.timeout:g}s")
            if progress:
                progress.advance(descriptor.id, failed=True)
        await asyncio.gather(*pending, return_exceptions=True)

    @staticmethod
    async def _run_one(validator: ValidatorBase, snapshot: PageSnapshot) -> ValidatorResult:
        descriptor = validator.descriptor
        try:
            return await validator.run(snapshot)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error("Validator '%s' failed: %s", descriptor.id, e, exc_info=logger.isEnabledFor(logging.DEBUG))
            return error_result(descriptor, str(e) or e.__class__.__name__)


async def run_health_check(
        url: str,
        config: Optional[Dict] = None,
        snapshot_provider: Optional[SnapshotProvider] = None
) -> List[ValidatorResult]:
    """
    Configuration-driven entry point: one shared HTTP session, the validator
    list from `config['validators']` and the default HTTP acquisition client.
    """
    config = config if config is not None else config_manager.get_all()
    descriptors = ConfigManager.parse_validator_descriptors(config.get("validators"))
    orchestrator_config = config.get("orchestrator", {})

    async with HttpRequestService(config) as http:
        controller = HealthCheckController(
            descriptors,
            validators_factory=lambda descriptor: ValidatorRegistry.build(descriptor, config=config, http=http),
            snapshot_provider=snapshot_provider or HttpSnapshotService(http),
            timeout=orchestrator_config.get("timeout", DEFAULT_TIMEOUT),
            show_progress=orchestrator_config.get("show_progress", False),
        )
        return await controller.run(url)


def check_page(url: str, config: Optional[Dict] = None, configure_logs: bool = True) -> List[ValidatorResult]:
    """Blocking entry point for host applications; applies the 'logging' settings first."""
    config = config if config is not None else config_manager.get_all()
    if configure_logs:
        configure_from_settings(config.get("logging"))
    return asyncio.run(run_health_check(url, config=config))
