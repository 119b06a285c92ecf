# tmd_app/config.py
import os
from dataclasses import dataclass

DEFAULT_ORIGINS = (
    "http://127.0.0.1:5500",
    "http://localhost:5500",
    "http://127.0.0.1:63342",
    "http://localhost:63342",
    "null",
)


def _split(value: str) -> tuple:
    return tuple(item.strip() for item in value.split(",") if item.strip())


@dataclass(frozen=True)
class AppSettings:
    cors_origins: tuple = DEFAULT_ORIGINS
    log_level: str = "INFO"
    stream_chunk: int = 50          # samples per DATA frame on the websocket
    stream_delay: float = 0.005     # s between frames
    spectrum_damping: tuple = (0.05,)


def load_settings(environ=None) -> AppSettings:
    """Settings from TMD_* environment variables, defaults otherwise."""
    env = os.environ if environ is None else environ
    defaults = AppSettings()

    origins = env.get("TMD_CORS_ORIGINS")
    damping = env.get("TMD_SPECTRUM_DAMPING")
    return AppSettings(
        cors_origins=_split(origins) if origins else defaults.cors_origins,
        log_level=env.get("TMD_LOG_LEVEL", defaults.log_level).upper(),
        stream_chunk=max(1, int(env.get("TMD_STREAM_CHUNK", defaults.stream_chunk))),
        stream_delay=float(env.get("TMD_STREAM_DELAY", defaults.stream_delay)),
        spectrum_damping=tuple(float(h) for h in _split(damping)) if damping else defaults.spectrum_damping,
    )
