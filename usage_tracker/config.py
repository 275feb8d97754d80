import os

BACKEND_URL = os.environ.get("USAGE_TRACKER_BACKEND_URL", "http://127.0.0.1:8787").rstrip("/")
DATA_PATH = os.environ.get("CLAUDE_CONFIG_DIR") or None
SYNC_STRATEGY = os.environ.get("USAGE_TRACKER_SYNC", "push")  # "push" or "poll"
POLL_INTERVAL_S = float(os.environ.get("USAGE_TRACKER_POLL_INTERVAL", "5"))
HOST = os.environ.get("USAGE_TRACKER_HOST", "127.0.0.1")
PORT = int(os.environ.get("USAGE_TRACKER_PORT", "8788"))
LOG_LEVEL = os.environ.get("USAGE_TRACKER_LOG_LEVEL", "INFO").upper()
WINDOW = os.environ.get("USAGE_TRACKER_WINDOW", "browser")  # "browser" or "none"

REQUEST_TIMEOUT_S = 10.0
PUSH_EVENT = "usage-data-updated"
HEARTBEAT_INTERVAL_S = 5.0  # backend sends a delta at least this often
ANIMATION_WINDOW_S = 0.8
COMPACT_IDLE_S = 10.0
RECONNECT_INITIAL_S = 1.0
RECONNECT_MAX_S = 30.0

# Logical window sizes (width, height)
NORMAL_SIZE = (1280, 720)
COMPACT_SIZE = (200, 147)
MINI_SIZE = (360, 32)
