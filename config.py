# config.py
import logging
import os
from typing import List

from dotenv import load_dotenv

load_dotenv()


# ------------ Safe env helpers (tolerate empty/invalid) ------------
def _env_str(name: str, default: str | None = None) -> str | None:
    v = os.getenv(name)
    return v if v not in (None, "") else default


def _env_int(name: str, default: int) -> int:
    v = os.getenv(name)
    if v in (None, "", "None", "null"):
        return default
    try:
        return int(v)
    except Exception:
        return default


def _env_float(name: str, default: float) -> float:
    v = os.getenv(name)
    if v in (None, "", "None", "null"):
        return default
    try:
        return float(v)
    except Exception:
        return default


def _env_bool(name: str, default: bool) -> bool:
    v = os.getenv(name)
    if v in (None, ""):
        return default
    return str(v).strip().lower() in {"1", "true", "t", "yes", "y", "on"}


def _env_list(name: str, default: List[str]) -> List[str]:
    v = os.getenv(name)
    if v in (None, ""):
        return list(default)
    return [h.strip().rstrip("/") for h in v.split(",") if h.strip()]


QUALITY_TIERS = ("maxres", "sddefault", "high", "medium", "default", "start", "middle", "end")


class Settings:
    # Static fallbacks; refresh_instances() replaces them at runtime
    FALLBACK_HOSTS = [
        "inv.nadeko.net",
        "yewtu.be",
        "invidious.nerdvpn.de",
        "iv.melmac.space",
        "invidious.privacyredirect.com",
    ]

    def __init__(self):
        self.INVIDIOUS_HOSTS = _env_list("INVIDIOUS_HOSTS", self.FALLBACK_HOSTS)
        self.REQUEST_TIMEOUT = _env_float("REQUEST_TIMEOUT", 3.0)
        self.IMAGE_TIMEOUT = _env_float("IMAGE_TIMEOUT", 10.0)

        quality = (_env_str("THUMBNAIL_QUALITY", "default") or "default").strip().lower()
        self.THUMBNAIL_QUALITY = quality if quality in QUALITY_TIERS else "default"

        self.INSTANCES_URL = _env_str("INSTANCES_URL", "https://api.invidious.io/instances.json")
        self.VOTES_URL = _env_str("VOTES_URL", "https://returnyoutubedislikeapi.com/votes")
        self.WATCH_BASE_URL = (_env_str("WATCH_BASE_URL", "https://www.youtube.com") or "").rstrip("/")

        # Named display surfaces
        self.SEARCH_SURFACE = _env_str("SEARCH_SURFACE", "*invidious search*")
        self.CHANNEL_SURFACE = _env_str("CHANNEL_SURFACE", "*invidious channels*")
        self.VIDEOS_SURFACE = _env_str("VIDEOS_SURFACE", "*invidious videos*")
        self.DETAILS_SURFACE = _env_str("DETAILS_SURFACE", "*invidious video*")

        self.DISCOVERY_ON_STARTUP = _env_bool("DISCOVERY_ON_STARTUP", False)
        self.DEBUG_UPSTREAM = _env_bool("DEBUG_UPSTREAM", False)
        self.LOG_LEVEL = (_env_str("LOG_LEVEL", "INFO") or "INFO").upper()

        self.CORS_ORIGINS = _env_str("CORS_ORIGINS", "*")
        self.PORT = _env_int("PORT", 8080)
        self.USER_AGENT = _env_str(
            "USER_AGENT",
            (
                "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
                "AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36 "
                "IvBrowse/1.0 httpx"
            ),
        )

    def surface_names(self) -> List[str]:
        return [self.SEARCH_SURFACE, self.CHANNEL_SURFACE, self.VIDEOS_SURFACE, self.DETAILS_SURFACE]


def setup_logging(level: str = "INFO"):
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s - %(levelname)s - %(message)s",
    )
