"""Protocol constants for Konnected panels."""

# SSDP discovery
SSDP_MULTICAST_ADDRESS = "239.255.255.250"
SSDP_PORT = 1900
SSDP_SEARCH_TARGET = "ssdp:all"
SSDP_URN_PREFIX = "urn:schemas-konnected-io:device"
DEVICE_DESCRIPTION_FILE = "Device.xml"
STATUS_PATH = "status"

# Panel HTTP endpoints
SETTINGS_PATH = "settings"
ZONE_ACTUATION_PATH = "zone"  # pro panels
PIN_ACTUATION_PATH = "device"  # basic panels

# Callback listener
API_PREFIX = "/api/konnected"
CALLBACK_ROUTE = API_PREFIX + "/device/{id}"
PLATFORM_NAME = "pykonnected"

# Defaults
DEFAULT_LISTENER_PORT = 0  # auto-choose
DEFAULT_DISCOVERY_TIMEOUT = 5.0
DISCOVERY_MAX_RETRIES = 5
DEFAULT_ENTRY_DELAY = 30.0
DEFAULT_HTTP_TIMEOUT = 10.0
AUDIBLE_BEEP_PULSE_MS = 150

# Environment
EXCLUDE_PANELS_ENV = "KONNECTED_EXCLUDE_PANELS"

DISCOVERY_HELP_URL = (
    "https://help.konnected.io/support/solutions/articles/"
    "32000023644-device-discovery-troubleshooting"
)
