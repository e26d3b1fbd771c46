"""
Centralized configuration for Wheelcast.
All settings come from environment variables for 12-factor deployment.
"""

import os
import secrets


def _env_bool(name: str, default: bool = False) -> bool:
    val = os.environ.get(name)
    if val is None:
        return default
    return val.strip().lower() in {"1", "true", "yes", "on"}


BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------
DATABASE_URL = os.environ.get(
    "DATABASE_URL",
    f"sqlite:///{os.path.join(BASE_DIR, 'wheelcast.db')}",
)

# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------
AUTH_SECRET = os.environ.get("AUTH_SECRET", "") or secrets.token_hex(32)
SESSION_EXPIRY_SECONDS = int(os.environ.get("SESSION_EXPIRY_SECONDS", str(7 * 24 * 3600)))
DEFAULT_ADMIN_USERNAME = os.environ.get("DEFAULT_ADMIN_USERNAME", "admin")
DEFAULT_ADMIN_PASSWORD = os.environ.get("DEFAULT_ADMIN_PASSWORD", "admin")
# Wheel keys never drop below 16 bytes of entropy.
CAPABILITY_TOKEN_BYTES = max(16, int(os.environ.get("CAPABILITY_TOKEN_BYTES", "16")))
SECURE_COOKIES = _env_bool("SECURE_COOKIES", False)

# ---------------------------------------------------------------------------
# Server
# ---------------------------------------------------------------------------
PORT = int(os.environ.get("PORT", "3000"))
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
CORS_ORIGINS = [
    s.strip()
    for s in os.environ.get("CORS_ORIGINS", "*").split(",")
    if s.strip()
]

# ---------------------------------------------------------------------------
# Twitch EventSub (channel point reward -> spin)
# ---------------------------------------------------------------------------
TWITCH_CLIENT_ID = os.environ.get("TWITCH_CLIENT_ID", "")
TWITCH_ACCESS_TOKEN = os.environ.get("TWITCH_ACCESS_TOKEN", "")
TWITCH_BROADCASTER_ID = os.environ.get("TWITCH_BROADCASTER_ID", "")
TWITCH_REWARD_ID = os.environ.get("TWITCH_REWARD_ID", "")
# Owner whose wheel spins when the reward is redeemed.
TWITCH_OWNER_USERNAME = os.environ.get("TWITCH_OWNER_USERNAME", DEFAULT_ADMIN_USERNAME)
EVENTSUB_URL = os.environ.get("EVENTSUB_URL", "wss://eventsub.wss.twitch.tv/ws")
EVENTSUB_SUBSCRIPTIONS_URL = os.environ.get(
    "EVENTSUB_SUBSCRIPTIONS_URL",
    "https://api.twitch.tv/helix/eventsub/subscriptions",
)
EVENTSUB_RECONNECT_SECONDS = float(os.environ.get("EVENTSUB_RECONNECT_SECONDS", "5"))


def eventsub_configured() -> bool:
    """Return True if every Twitch credential needed by the listener is set."""
    return bool(
        TWITCH_CLIENT_ID
        and TWITCH_ACCESS_TOKEN
        and TWITCH_BROADCASTER_ID
        and TWITCH_REWARD_ID
    )
