from libs.core.application.contracts import AlertNotifier
from libs.core.application.events import WILDCARD, EventBus, RecentEventLog
from libs.core.application.guardian_service import GuardianService
from libs.infra.http.alert_notifier import HttpAlertNotifier, LoggingAlertNotifier
from libs.infra.scheduling import ThreadingScheduler
from services.api_gateway.infrastructure.heartbeat import HeartbeatRunner
from services.api_gateway.infrastructure.memory_store import (
    InMemoryAccidentRepository,
    InMemoryDatabase,
    InMemorySettingsRepository,
    InMemoryVehicleTypeStore,
)
from services.api_gateway.settings import GatewaySettings


def _build_notifier(settings: GatewaySettings) -> AlertNotifier:
    if not settings.alert_endpoint_url:
        return LoggingAlertNotifier()
    return HttpAlertNotifier(
        endpoint_url=settings.alert_endpoint_url,
        auth_token=settings.alert_auth_token,
        timeout_sec=settings.alert_timeout_sec,
    )


settings = GatewaySettings()
db = InMemoryDatabase()
scheduler = ThreadingScheduler()
event_bus = EventBus()
event_log = RecentEventLog(maxlen=settings.event_log_size)
event_bus.subscribe(WILDCARD, event_log)

guardian_service = GuardianService(
    accident_repository=InMemoryAccidentRepository(db),
    notifier=_build_notifier(settings),
    settings_repository=InMemorySettingsRepository(db),
    vehicle_type_store=InMemoryVehicleTypeStore(db),
    scheduler=scheduler,
    events=event_bus,
    config=settings.pipeline_config(),
)
heartbeat = HeartbeatRunner(
    tick=guardian_service.heartbeat,
    period_sec=settings.heartbeat_period_sec,
)


def get_guardian_service() -> GuardianService:
    return guardian_service


def get_event_log() -> RecentEventLog:
    return event_log


def reset_state() -> None:
    guardian_service.reset_runtime_state()
    db.clear()
    event_log.clear()
