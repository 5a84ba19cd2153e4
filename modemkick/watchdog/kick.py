import asyncio
import logging
from collections.abc import Awaitable, Callable
from enum import StrEnum
from typing import Final

from dbus_next.errors import DBusError

from modemkick.dbus.modem import Modem
from modemkick.models.settings import KickSettings


class KickStep(StrEnum):
    """Steps of the recovery sequence.
    """

    DISABLE = 'disable'
    LOW_POWER = 'low-power'
    ENABLE = 'enable'
    FINISH = 'finish'


NEXT_STEP: Final[dict[KickStep, KickStep]] = {
    KickStep.DISABLE: KickStep.LOW_POWER,
    KickStep.LOW_POWER: KickStep.ENABLE,
    KickStep.ENABLE: KickStep.FINISH,
}

STEP_MESSAGES: Final[dict[KickStep, str]] = {
    KickStep.DISABLE: 'disabling',
    KickStep.LOW_POWER: 'setting low-power mode',
    KickStep.ENABLE: 're-enabling',
}


class KickOperation:
    """Drives one modem through disable, low-power and enable.

    Each step runs behind a one-shot timer of step_delay_seconds. A failed
    step is retried; the failure budget covers the whole operation, and once
    it is spent the operation skips to FINISH. Reaching FINISH releases the
    operation through the on_finished callback.

    After cancel() nothing the operation scheduled has any further effect.
    """

    def __init__(
        self,
        modem: Modem,
        settings: KickSettings,
        on_finished: Callable[['KickOperation'], None] | None = None,
    ):
        """Initialize the operation; nothing runs until start().

        Args:
            modem: The modem to kick
            settings: Step delay and retry budget
            on_finished: Called once when the operation reaches FINISH
        """
        self._logger = logging.getLogger(__name__)

        self._modem = modem
        self._settings = settings
        self._on_finished = on_finished

        self._step = KickStep.DISABLE
        self._tries = 0
        self._timer: asyncio.TimerHandle | None = None
        self._call: asyncio.Task | None = None
        self._cancelled = False
        self._finished = False
        self._exhausted = False

    @property
    def object_path(self) -> str:
        return self._modem.object_path

    @property
    def step(self) -> KickStep:
        """The step that is pending or in flight.
        """
        return self._step

    @property
    def tries(self) -> int:
        """Failures so far in this operation.
        """
        return self._tries

    @property
    def pending(self) -> bool:
        """Whether a step is armed and waiting for its timer.
        """
        return self._timer is not None

    @property
    def in_flight(self) -> bool:
        """Whether a ModemManager call is awaiting its reply.
        """
        return self._call is not None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def finished(self) -> bool:
        return self._finished

    @property
    def exhausted(self) -> bool:
        """Whether the operation gave up after too many failures.
        """
        return self._exhausted

    def start(self) -> None:
        """Arm the first step.
        """
        self._schedule(KickStep.DISABLE)

    def cancel(self) -> None:
        """Abort the operation.

        Clears the pending timer, cancels the in-flight call and makes any
        callback that still runs a no-op.
        """
        if self._cancelled or self._finished:
            return

        self._cancelled = True
        self._tries = 0

        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

        if self._call is not None:
            self._call.cancel()
            self._call = None

        self._logger.debug('%s: kick cancelled', self.object_path)

    def _schedule(self, step: KickStep) -> None:
        """Arm step behind the step delay.
        """
        assert self._timer is None, \
            f'{self.object_path}: a kick step is already pending'

        self._step = step
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(
            self._settings.step_delay_seconds,
            self._run_step,
        )

    def _run_step(self) -> None:
        """Timer callback: run the armed step.
        """
        self._timer = None
        if self._cancelled:
            return

        if self._step is KickStep.FINISH:
            self._finish()
            return

        self._logger.info(
            '%s: %s (try %d)...',
            self.object_path,
            STEP_MESSAGES[self._step],
            self._tries,
        )
        self._call = asyncio.get_running_loop().create_task(
            self._invoke(self._step)
        )

    def _action(self, step: KickStep) -> Callable[[], Awaitable[None]]:
        return {
            KickStep.DISABLE: self._modem.disable,
            KickStep.LOW_POWER: self._modem.set_power_state_low,
            KickStep.ENABLE: self._modem.enable,
        }[step]

    async def _invoke(self, step: KickStep) -> None:
        """Run the ModemManager call for step and act on its result.
        """
        try:
            await self._action(step)()
        except DBusError as e:
            if self._cancelled:
                return
            self._call = None
            self._logger.warning(
                'Error: %s failed to %s: %s',
                self.object_path,
                step,
                e,
            )
            self._retry()
            return
        except Exception as e:
            if self._cancelled:
                return
            self._call = None
            self._logger.warning(
                'Error: %s failed to %s: %s',
                self.object_path,
                step,
                e,
                exc_info=True,
            )
            self._retry()
            return

        if self._cancelled:
            return
        self._call = None
        self._schedule(NEXT_STEP[step])

    def _retry(self) -> None:
        """Count a failure and retry the current step, or give up.
        """
        self._tries += 1
        if self._tries > self._settings.max_retries:
            self._logger.warning(
                '%s: too many retries; failing operation',
                self.object_path,
            )
            self._exhausted = True
            self._schedule(KickStep.FINISH)
        else:
            self._schedule(self._step)

    def _finish(self) -> None:
        self._finished = True
        if self._exhausted:
            self._logger.warning(
                '%s: kick abandoned after %d failures',
                self.object_path,
                self._tries,
            )
        else:
            self._logger.info('%s: modem kicked', self.object_path)

        self._tries = 0
        if self._on_finished is not None:
            self._on_finished(self)
