import os
from pydantic import BaseModel, Field


ENV_PREFIX = "SATGUARD_"


class Settings(BaseModel):
    celestrak_gp_url: str = "https://celestrak.org/NORAD/elements/gp.php"
    debris_group: str = "cosmos-2251-debris"
    active_group: str = "active"
    kp_url: str = "https://services.swpc.noaa.gov/json/planetary_k_index_1m.json"
    http_timeout_s: float = 20.0
    user_agent: str = "satguard/1.0 (+local)"

    debris_limit: int = 200
    debris_cache_ttl_s: float = 2 * 3600.0

    # screening policy
    horizon_hours: float = Field(default=2.0, gt=0)
    step_s: float = Field(default=300.0, gt=0)
    threshold_km: float = 100.0
    high_km: float = 5.0
    medium_km: float = 25.0
    max_position_evaluations: int = 2_000_000

    kp_medium: float = 5.0
    kp_high: float = 7.0

    cors_allow_origins: list[str] = ["*"]
    cors_allow_headers: list[str] = ["*"]
    cors_allow_methods: list[str] = ["*"]
    log_level: str = "INFO"


def load_settings(environ=None) -> Settings:
    """Build settings from defaults plus any SATGUARD_* environment overrides.

    List fields take a comma separated value.
    """
    environ = os.environ if environ is None else environ
    overrides = {}
    for field, info in Settings.model_fields.items():
        raw = environ.get(ENV_PREFIX + field.upper())
        if raw is None:
            continue
        if info.annotation == list[str]:
            overrides[field] = [part.strip() for part in raw.split(",") if part.strip()]
        else:
            overrides[field] = raw
    return Settings(**overrides)


settings = load_settings()
