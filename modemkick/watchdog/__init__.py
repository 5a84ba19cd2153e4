from modemkick.watchdog.daemon import KickDaemon
from modemkick.watchdog.idle_detector import IdleDetector
from modemkick.watchdog.kick import KickOperation, KickStep
from modemkick.watchdog.registration import RegistrationMonitor, is_stuck_state
from modemkick.watchdog.registry import ModemContext, ModemRegistry
from modemkick.watchdog.supervisor import ServiceSupervisor

__all__ = [
    'IdleDetector',
    'KickDaemon',
    'KickOperation',
    'KickStep',
    'ModemContext',
    'ModemRegistry',
    'RegistrationMonitor',
    'ServiceSupervisor',
    'is_stuck_state',
]
