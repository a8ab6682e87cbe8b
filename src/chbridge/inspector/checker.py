import logging
from ..domain.interfaces import StoreHandle
from ..domain.models import ConnectionHealth, HealthStatus

logger = logging.getLogger(__name__)

class ConnectionChecker:
    """
    SRP: Responsible only for connectivity checks (`SELECT 1` round trip).
    """
    def __init__(self, connector: StoreHandle):
        self.connector = connector

    def check_health(self) -> ConnectionHealth:
        health = self.connector.check_health()
        if health.status == HealthStatus.SUCCESS:
            logger.info("%s reachable in %sms (server %s)", health.db_alias, health.latency_ms, health.server_version)
        else:
            logger.warning("%s check %s: %s", health.db_alias, health.status.value, health.error_message)
        return health

