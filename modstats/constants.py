"""
Constants: versions, endpoints, intervals and timeouts.
"""

COMPONENT_NAME = "ModStatistics"

# The copy with the highest VERSION runs. Also sent as the report protocol version.
VERSION = 1
BUILD_VERSION = "1.0.0"

# Class attribute other copies read during arbitration.
VERSION_MARKER = "_version"

# ─── Endpoints ───────────────────────────────────────────────────
SUBMIT_URL = "http://stats.majiir.net/submit_report"
UPDATE_MANIFEST_URL = "http://stats.majiir.net/update_manifest"

# ─── Timing ──────────────────────────────────────────────────────
CHECKPOINT_INTERVAL_SEC = 300  # Overwrite the crash checkpoint every 5 minutes

# ─── Network ─────────────────────────────────────────────────────
API_TIMEOUT_SUBMIT = 25        # Seconds per report upload
API_TIMEOUT_MANIFEST = 15
API_TIMEOUT_DOWNLOAD = 60

# ─── Files ───────────────────────────────────────────────────────
LOG_MAX_BYTES = 1_000_000      # Truncate the log file past this size
