import os
import threading


def _env_bool(name: str, default: str) -> bool:
    return os.environ.get(name, default).lower() in ["true", "1", "yes", "on"]


class BackendSettings:
    _instance = None
    _lock = threading.Lock()

    def __init__(self):
        self.DEBUG_MODE = os.environ.get("DEBUG_MODE", "development")

        # Security: Force disable debug info in API responses (overrides DEBUG_MODE)
        self.DISABLE_API_DEBUG_INFO = _env_bool("DISABLE_API_DEBUG_INFO", "false")

        # Allowed browser origins (comma separated), "*" allows any
        self.CORS_ORIGINS = [
            o.strip() for o in os.environ.get("CORS_ORIGINS", "*").split(",") if o.strip()
        ]

        # Lifetime of an issued bearer session in the credential store (seconds)
        self.SESSION_TTL = int(os.environ.get("SESSION_TTL", "604800"))

        # WebSocket heartbeat: server pings every interval, client must answer within timeout
        self.WS_PING_INTERVAL = float(os.environ.get("WS_PING_INTERVAL", "30"))
        self.WS_PING_TIMEOUT = float(os.environ.get("WS_PING_TIMEOUT", "5"))

        # Per-send timeout and per-session outbound queue bound
        self.WS_SEND_TIMEOUT = float(os.environ.get("WS_SEND_TIMEOUT", "5"))
        self.WS_QUEUE_SIZE = int(os.environ.get("WS_QUEUE_SIZE", "1000"))

        # Connection limits
        self.WS_MAX_CONNECTIONS_PER_USER = int(os.environ.get("WS_MAX_CONNECTIONS_PER_USER", "10"))
        self.WS_MAX_TOTAL_CONNECTIONS = int(os.environ.get("WS_MAX_TOTAL_CONNECTIONS", "10000"))

        # Redis pub/sub relay for multi-instance deployments
        self.WS_PUBSUB_ENABLED = _env_bool("WS_PUBSUB_ENABLED", "false")

    def __new__(cls):
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super(BackendSettings, cls).__new__(cls)
        return cls._instance

settings = BackendSettings()
