import asyncio
import logging
import time

from modemkick.models.settings import KickSettings
from modemkick.watchdog.registration import Clock
from modemkick.watchdog.registry import ModemContext, ModemRegistry


class IdleDetector:
    """Periodically kicks modems that stayed idle/denied for too long.

    A sweep only arms kick operations; it never waits on ModemManager.
    """

    def __init__(
        self,
        registry: ModemRegistry,
        settings: KickSettings,
        clock: Clock = time.monotonic,
    ):
        """Initialize the detector.

        Args:
            registry: The modems to sweep
            settings: Sweep interval and kick threshold
            clock: Monotonic clock, must match the registry's
        """
        self._logger = logging.getLogger(__name__)

        self._registry = registry
        self._settings = settings
        self._clock = clock
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> asyncio.Task:
        """Start sweeping every sweep_interval_seconds.
        """
        if self._task is None:
            self._task = asyncio.create_task(
                self._run(),
                name='modemkick-idle-detector',
            )
        return self._task

    async def stop(self) -> None:
        """Stop sweeping.
        """
        if self._task is None:
            return

        if not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None

    async def _run(self) -> None:
        self._logger.info(
            'Sweeping every %.0f seconds; kicking after %.0f seconds '
            'idle/denied',
            self._settings.sweep_interval_seconds,
            self._settings.kick_threshold_seconds,
        )
        while True:
            await asyncio.sleep(self._settings.sweep_interval_seconds)
            self.sweep()

    def sweep(self) -> list[str]:
        """Check every tracked modem once.

        Returns:
            Object paths of the modems a kick was started for
        """
        now = self._clock()
        kicked: list[str] = []

        def check(context: ModemContext) -> None:
            if self._check(context, now):
                kicked.append(context.path)

        self._registry.for_each(check)
        return kicked

    def _check(self, context: ModemContext, now: float) -> bool:
        threshold = self._settings.kick_threshold_seconds

        if self._settings.force_kick:
            self._logger.info('%s: forced kick; kicking...', context.path)
            context.start_kick()
            return True

        elapsed = context.monitor.stuck_for(now)
        if elapsed is None:
            return False

        if elapsed > threshold:
            self._logger.info(
                '%s: idle/denied for %d seconds; kicking...',
                context.path,
                int(elapsed),
            )
            context.start_kick()
            return True

        self._logger.info(
            '%s: not kicking yet; wait %d seconds',
            context.path,
            int(threshold - elapsed),
        )
        return False
