# constants.py

# Backend API
DEFAULT_BACKEND_BASE = "http://127.0.0.1:8787"
API_HEALTH = "/health"
API_DISCOVERY_DEVICES = "/api/v1/discovery/devices"
API_TRANSFERS = "/api/v1/transfers"
API_INCOMING_REQUEST = "/api/v1/incoming-request"
API_INCOMING_DECISION = "/api/v1/incoming-request/decision"
API_SECURITY_STATE = "/api/v1/security/state"
API_SECURITY_TRUST = "/api/v1/security/trust"
API_SETTINGS = "/api/v1/settings"
BACKEND_ENV_VAR = "PEERDASH_BACKEND"

# Transfer simulation
TICK_INTERVAL = 0.5
PROGRESS_STEP = 20

# Discovery view text
MODE_TEXT = {
    "loading": "Discovering nearby devices...",
    "empty": "No nearby devices currently available",
    "error": "Discovery unavailable (start backend_service on :8787)",
}

# Send confirmation
MSG_NO_FILES = "Select at least one file before sending."
MSG_NO_RECEIVERS = "Select at least one receiver before sending."
MSG_NO_LOOP = "Transfers can only start while the dashboard is running."

# Defaults
DEFAULT_CONFIG_PATH = "config.toml"
DEFAULT_LOG_PATH = "logs/peerdash.jsonl"
DEFAULT_FINGERPRINT = "FA:13:7B:2C:90:AA:45:99"
