"""
Central place for tunable knobs of the capacity model.

These values are intentionally simple; they can be updated without touching logic.
"""

# Floor applied to every denominator (capacity, ingress, cost units).
EPSILON = 1e-6

# Utilization above which the cubic queueing penalty kicks in.
DEFAULT_QUEUE_THRESHOLD = 0.7

# Fixed p95:p50 ratio used for every modeled node.
DEFAULT_P95_MULTIPLIER = 2.0

# Utilization warning tiers for services. Overload (>= 1.0) is always reported.
ELEVATED_UTILIZATION = 0.70
HIGH_UTILIZATION = 0.85
OVERLOADED_UTILIZATION = 1.0

# Assumed p95:p50 ratio of a datastore's declared p95 latency.
DATASTORE_P95_TO_P50_RATIO = 1.5

# Cost units charged per write when a datastore declares no write amplification.
DEFAULT_WRITE_AMPLIFICATION = 4.0

# --- Host runner ---
# Edits arriving within this window are coalesced into a single evaluation (seconds).
DEFAULT_DEBOUNCE_SEC = 0.15

# Worker threads evaluating scenarios off the caller's thread.
DEFAULT_RUNNER_MAX_WORKERS = 2

# --- Protocols / enums used in the JSON format ---
PROTOCOL_GENERIC = "Generic"
PROTOCOL_KAFKA = "Kafka"

FAN_OUT_SPLIT = "split"
FAN_OUT_DUPLICATE = "duplicate"

OP_READ = "read"
OP_WRITE = "write"
OP_BULK = "bulk"
OP_STREAM = "stream"
