"""Environment-driven configuration for the API gateway."""

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from libs.core.application.escalation import EscalationTimings
from libs.core.application.guardian_service import PipelineConfig
from libs.core.domain.entities import VehicleProfile


class GatewaySettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="GUARDIAN_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    log_level: str = "INFO"
    smoothing_alpha: float = Field(default=0.3, gt=0.0, le=1.0)
    staleness_threshold_sec: float = Field(default=10.0, gt=0.0)
    heartbeat_period_sec: float = Field(default=1.0, gt=0.0)
    confirmation_window_sec: float = Field(default=30.0, gt=0.0)
    rearm_cooldown_sec: float = Field(default=5.0, ge=0.0)
    default_vehicle_type: VehicleProfile = VehicleProfile.SCOOTER
    alert_endpoint_url: str = ""
    alert_auth_token: str | None = None
    alert_timeout_sec: float = Field(default=15.0, gt=0.0)
    event_log_size: int = Field(default=200, gt=0)

    @field_validator("log_level")
    @classmethod
    def _upper_log_level(cls, value: str) -> str:
        return value.upper()

    def pipeline_config(self) -> PipelineConfig:
        return PipelineConfig(
            smoothing_alpha=self.smoothing_alpha,
            staleness_threshold_sec=self.staleness_threshold_sec,
            default_vehicle_type=self.default_vehicle_type,
            timings=EscalationTimings(
                confirmation_window_sec=self.confirmation_window_sec,
                rearm_cooldown_sec=self.rearm_cooldown_sec,
            ),
        )
