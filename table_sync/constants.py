"""Project-wide constants (hook points, wire event type, defaults)."""

BEFORE_EVENT = "before_event"
AFTER_EVENT = "after_event"
HOOK_POINTS = (BEFORE_EVENT, AFTER_EVENT)

INVALID_HOOK_CONTEXT_MESSAGE = (
    "Wrong context, available contexts are: [:before_event, :after_event]"
)

ENVELOPE_EVENT = "table_sync"
UPDATE_EVENT = "update"
DESTROY_EVENT = "destroy"

DEFAULT_VERSION_KEY = "version"
DEFAULT_PRIMARY_KEYS = ("id",)

DEFAULT_LOCK_TIMEOUT_SECONDS: float = 5.0
DEFAULT_DATABASE_URL = "table_sync.db"
DEFAULT_BATCH_WORKERS = 4
