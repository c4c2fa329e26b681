# retail_pos/constants.py
APP_NAME = "Easy POS"

DATA_DIR = "data"
DB_FILE_NAME = "easy_pos.db"
DEFAULT_MONGO_DB = "easy_pos"

# ---- local schema ----
TABLE_KV_STORE = "kv_store"
TABLE_SCHEMA_VERSION = "schema_version"
SCHEMA_VERSION = "1.0.0"

# ---- logical collections (same names in both backends) ----
COLL_PRODUCTS = "products"
COLL_CATEGORIES = "categories"
COLL_SALES = "sales"
COLL_USERS = "users"
COLL_SETTINGS = "settings"
COLL_STOCK_HISTORY = "stock_history"

COLLECTIONS: tuple[str, ...] = (
    COLL_PRODUCTS,
    COLL_CATEGORIES,
    COLL_SALES,
    COLL_USERS,
    COLL_SETTINGS,
    COLL_STOCK_HISTORY,
)

SETTINGS_DOC_ID = "store"

# Optimistic concurrency token kept on every stored document
VERSION_FIELD = "_version"

# ---- sales ----
PAYMENT_METHODS: tuple[str, ...] = ("CASH", "CARD")

STATUS_COMPLETED = "COMPLETED"
STATUS_PARTIAL = "PARTIAL"
STATUS_REFUNDED = "REFUNDED"

DISCOUNT_TYPES: tuple[str, ...] = ("percent", "fixed")

# Tolerance for the subTotal - discount + tax == total check
MONEY_EPSILON = 0.005

CURRENCY = "$"
