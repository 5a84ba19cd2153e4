from modemkick.models.modem_info import ModemInfo
from modemkick.models.settings import KickSettings

__all__ = [
    'KickSettings',
    'ModemInfo',
]
