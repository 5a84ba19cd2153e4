from pydantic import BaseModel, Field

from modemkick.dbus.constants import RegistrationState


class ModemInfo(BaseModel):
    """Snapshot of a ModemManager modem, as shown by list-modems.

    Args:
        object_path: D-Bus object path
        model: Modem model name
        primary_port: Primary control port
        registration_state: 3GPP registration state
        operator_name: Current operator
        skip_reason: Why the watchdog would not track the modem, if it
            would not
    """
    model_config = {'frozen': True}

    object_path: str = Field(..., min_length=1)
    model: str = Field('')
    primary_port: str | None = Field(None)
    registration_state: RegistrationState = Field(RegistrationState.UNKNOWN)
    operator_name: str = Field('')
    skip_reason: str | None = Field(None)

    @property
    def tracked(self) -> bool:
        return self.skip_reason is None
