class Config:
    name: str = "passwatch"
    message_version: str = "1.0.0"
    data_dir: str = "~/passwatch"


class AstrodynamicsConfig(Config):
    name = "Astrodynamics"

    EARTH_RADIUS_KM: float = 6371.0  # spherical Earth
    MU_EARTH: float = 398600.4418  # km^3/s^2

    # Kepler solver
    kepler_tolerance: float = 1e-10
    kepler_max_iterations: int = 10

    # Pass search
    coarse_step: float = 60.0  # seconds
    fine_step: float = 1.0  # seconds
    max_backtrack: float = 3600.0  # seconds searched before the window for an in-progress rise
    horizon: float = 0.0  # degrees, rise and set are found at this elevation
    min_pass_duration: float = 300.0  # graze rejection (seconds)
    min_elevation: float = 10.0  # degrees a pass must culminate at
    horizon_days: int = 7

    # Geostationary heuristic
    stationary_azimuth_tolerance: float = 5.0  # degrees
    stationary_min_duration: float = 12 * 3600.0  # seconds


class PredictionConfig(Config):
    name = "Prediction"
    cache_ttl: float = 2 * 3600.0  # seconds
    passed_grace: float = 10.0  # seconds a concluded pass stays visible
    key_precision: int = 4  # decimals of lat/lng in cache keys
    store_path: str = "~/passwatch/predictions.json"


class TrackingConfig(Config):
    name = "Tracking"
    burst_seconds: int = 300  # upstream hard cap
    safety_margin: float = 30.0  # refetch this long before the buffer runs out
    min_refetch_delay: float = 1.0
    frame_interval: float = 0.05  # seconds between interpolation frames
    history_seconds: float = 300.0
    fetch_timeout: float = 12.0
    memo_angle_tolerance: float = 1e-4  # degrees
    memo_altitude_tolerance: float = 10.0  # meters
    queue_size: int = 1000  # telemetry messages buffered per subscriber


class UpstreamConfig(Config):
    name = "Upstream"
    n2yo_base_url: str = "https://api.n2yo.com/rest/v1/satellite"
    celestrak_base_url: str = "https://celestrak.org/NORAD/elements/gp.php"
    user_agent: str = "passwatch/1.0"
    request_timeout: float = 12.0

    # Hourly request budgets per endpoint
    budgets: dict = {
        "radiopasses": 100,
        "positions": 1000,
        "tle": 1000,
    }


class LogConfig(Config):
    name: str = "LogService"
    root_log_dir: str = "~/passwatch/log/"
    max_log_size: int = 10 * 1024 * 1024  # 10 MB
    backup_count: int = 3
