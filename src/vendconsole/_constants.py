"""Internal constants shared across the library."""

FIRESTORE_BASE_URL = "https://firestore.googleapis.com/v1"
IDENTITY_BASE_URL = "https://identitytoolkit.googleapis.com/v1"
SECURETOKEN_BASE_URL = "https://securetoken.googleapis.com/v1"
USER_AGENT = "vendconsole/1"

# Collection names as written by the deployed terminals.
TERMINALS_COLLECTION = "machines"
TOKENS_COLLECTION = "tokens"
SALES_COLLECTION = "sales"

#: Bounded fetch window for live queries.
WINDOW_LIMIT = 200

#: Upper bound on writes in one atomic commit (Firestore hard limit).
MAX_BATCH_WRITES = 500

PAPER_FULL = 100
LOW_PAPER_THRESHOLD = 20
PAPER_WARNING_THRESHOLD = 50

#: Sale price tiers offered by the import form, in whole currency units.
PRICE_TIERS: tuple[int, ...] = (2000, 5000, 10000, 20000, 50000, 100000)

DEFAULT_PLAN = "Default Plan"
UNKNOWN_TERMINAL = "Unknown Terminal"


def collection_path(app_id: str, collection: str) -> str:
    """Return the namespaced collection path for *app_id*."""
    app = app_id.strip()
    if not app:
        raise ValueError("app_id must be non-empty")
    return f"artifacts/{app}/public/data/{collection}"
