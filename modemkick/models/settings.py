from typing import Any, Self

from pydantic import BaseModel, Field


class KickSettings(BaseModel):
    """Timing and retry configuration of the watchdog.

    Args:
        sweep_interval_seconds: Period of the idle detector sweep
        kick_threshold_seconds: How long a modem must stay idle/denied
            before it is kicked
        step_delay_seconds: Delay before each recovery step runs
        max_retries: Failures tolerated per recovery operation
        force_kick: Treat every tracked modem as stuck on each sweep
    """
    model_config = {'frozen': True}

    sweep_interval_seconds: float = Field(300, gt=0)
    kick_threshold_seconds: float = Field(605, gt=0)
    step_delay_seconds: float = Field(10, ge=0)
    max_retries: int = Field(3, ge=0)
    force_kick: bool = Field(False)

    @classmethod
    def production(cls) -> Self:
        """Production timings: sweep every 5 minutes, kick after 10 minutes.

        The extra 5 seconds on the threshold keeps a modem that went idle
        just after a sweep from slipping past its second eligible sweep.
        """
        return cls()

    @classmethod
    def debug(cls) -> Self:
        """Accelerated timings for testing the daemon by hand.
        """
        return cls(sweep_interval_seconds=15, kick_threshold_seconds=60)

    def with_overrides(self, **overrides: Any) -> Self:
        """Return a validated copy with the non-None overrides applied.

        Raises:
            pydantic.ValidationError: If an override is out of range
        """
        values = self.model_dump()
        values.update({
            name: value
            for name, value in overrides.items()
            if value is not None
        })
        return self.__class__(**values)
