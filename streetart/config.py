"""
Single place for default game/client configuration.
Environment variables override where noted.
"""
import os

# Catalog id from data/catalogs/<id>/. This is the default for new sessions and the API.
DEFAULT_CATALOG_ID = os.environ.get("STREETART_CATALOG", "prague")

# Local key-value store used by GameSession (JSON file)
STORAGE_PATH = os.environ.get("STREETART_STORAGE", os.path.join(os.path.expanduser("~"), ".streetart", "storage.json"))

# Capture notifications disappear after this many seconds
NOTIFICATION_DISMISS_SECONDS = 5.0

# Recent activity keeps only the most recent N captures
RECENT_ACTIVITY_LIMIT = 10

# Same player cannot scan the same art again within this window (backend only)
SCAN_COOLDOWN_SECONDS = int(os.environ.get("SCAN_COOLDOWN_SECONDS", "300"))

# Radius used when matching a scan location to the nearest art piece
NEAREST_ART_RADIUS_M = 100

DEFAULT_PLAYER_NAME = "Street Artist"
