"""Constants for Bellfires2MQTT bridge."""

# Fireplace wire protocol (hex strings, converted to raw bytes on send)
FRAME_PREFIX = "0233303330333033303830"
OPCODE_STATUS = "303303"
OPCODE_ON = "314103"
OPCODE_OFF = "313003"
OPCODE_FLAME_HEIGHT = "3136"
FRAME_TERMINATOR = "03"

# Step codes for flame heights 1..12
FLAME_STEPS = (
    "3830", "3842", "3937", "4132", "4145", "4239",
    "4335", "4430", "4443", "4537", "4633", "4646",
)
FLAME_HEIGHT_MIN = 1
FLAME_HEIGHT_MAX = 12

# Status frame layout (after the marker byte is dropped)
STATUS_FIELD_OFFSET = 14
STATUS_FIELD_LENGTH = 2
STATUS_ON_THRESHOLD = 123

# Default configuration paths
DEFAULT_CONFIG_FILE = "bellfires2mqtt.yaml"
DEFAULT_CONFIG_EXAMPLE_FILE = "bellfires2mqtt.yaml.example"
CONFIG_ENV_VAR = "BELLFIRES2MQTT_CONFIG"
DEFAULT_LOG_LEVEL = "INFO"

# MQTT Topics and Payloads
DEFAULT_TOPIC_PREFIX = "bellfires"
DEFAULT_CLIENT_ID = "bellfires2mqtt"
MQTT_PAYLOAD_ON = "1"
MQTT_PAYLOAD_OFF = "0"
MQTT_PAYLOAD_AVAILABLE = "true"
MQTT_PAYLOAD_UNAVAILABLE = "false"

# Home Assistant Discovery
DEFAULT_DISCOVERY_PREFIX = "homeassistant"

# Timeouts (seconds)
DEVICE_CONNECT_TIMEOUT = 10.0
DEVICE_RECONNECT_BACKOFF = 5.0
DEVICE_READ_MARGIN = 10.0
DEVICE_READ_CHUNK = 1024

# Status poll interval (seconds)
STATUS_POLL_INTERVAL = 60

# MQTT settings
MQTT_QOS = 1
MQTT_KEEPALIVE = 60
MQTT_RECONNECT_DELAY = 5
