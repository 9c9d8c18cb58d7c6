"""
Counters for the realtime connections of one process.

Exposed through ``GET /ws/metrics``. Can be extended with Prometheus or
other metrics backends.
"""


class WebSocketMetrics:
    """
    Simple metrics tracking for WebSocket connections.

    Tracks connection counts, message counts, and error rates.
    """

    def __init__(self):
        self.total_connections = 0
        self.total_disconnections = 0
        self.total_auth_failures = 0
        self.total_messages_sent = 0
        self.total_messages_received = 0
        self.total_send_errors = 0
        self.total_send_timeouts = 0
        self.total_dropped_deliveries = 0
        self.total_connection_limit_hits = 0
        self.total_heartbeat_timeouts = 0

    def connection_opened(self):
        self.total_connections += 1

    def connection_closed(self):
        self.total_disconnections += 1

    def auth_failed(self):
        self.total_auth_failures += 1

    def message_sent(self):
        self.total_messages_sent += 1

    def message_received(self):
        self.total_messages_received += 1

    def send_error(self):
        self.total_send_errors += 1

    def send_timeout(self):
        self.total_send_timeouts += 1

    def delivery_dropped(self):
        """Track a broadcast that could not be queued for a session."""
        self.total_dropped_deliveries += 1

    def connection_limit_hit(self):
        self.total_connection_limit_hits += 1

    def heartbeat_timeout(self):
        self.total_heartbeat_timeouts += 1

    def get_metrics(self) -> dict:
        """Get all metrics as a dictionary."""
        return {
            "total_connections": self.total_connections,
            "total_disconnections": self.total_disconnections,
            "active_connections": self.total_connections - self.total_disconnections,
            "total_auth_failures": self.total_auth_failures,
            "total_messages_sent": self.total_messages_sent,
            "total_messages_received": self.total_messages_received,
            "total_send_errors": self.total_send_errors,
            "total_send_timeouts": self.total_send_timeouts,
            "total_dropped_deliveries": self.total_dropped_deliveries,
            "total_connection_limit_hits": self.total_connection_limit_hits,
            "total_heartbeat_timeouts": self.total_heartbeat_timeouts,
            "error_rate": (
                self.total_send_errors / max(self.total_messages_sent, 1)
            ) if self.total_messages_sent > 0 else 0.0
        }
