"""Constants for the bulk import engine."""

# Maximum rows read from an uploaded file
MAX_ROWS = 5000

# Grid sizing
INITIAL_ROWS = 50
MIN_ROWS = 10
# When the last filled row is this close to the end, append GROW_BY blank rows
GROW_THRESHOLD = 5
GROW_BY = 20

# Generic controller pacing (seconds)
DEFAULT_BATCH_SIZE = 10
DEFAULT_DELAY_BETWEEN_ITEMS = 0.1
DEFAULT_DELAY_BETWEEN_BATCHES = 1.0
RATE_LIMIT_DELAY = 5.0
PAUSE_POLL_INTERVAL = 0.1

# Registry enrichment pacing (seconds)
ENRICHMENT_BATCH_SIZE = 3
ENRICHMENT_DELAY_BETWEEN_ITEMS = 0.5
ENRICHMENT_DELAY_BETWEEN_BATCHES = 2.0

# Decimal separators accepted by the number parser
DECIMAL_SEPARATORS = ("comma", "dot")

TRUTHY_TOKENS = frozenset({"true", "sim", "yes", "1", "s", "y"})
FALSY_TOKENS = frozenset({"false", "nao", "não", "no", "0", "n"})

# Field keys whose values are identifiers typed with masks (12.345.678/0001-90)
IDENTIFIER_KEYWORDS = (
    "cnpj",
    "cpf",
    "phone",
    "telefone",
    "celular",
    "whatsapp",
    "cep",
    "postal",
    "zipcode",
)

# Tax identifier length after mask removal
CNPJ_LENGTH = 14

EMAIL_PATTERN = r"^[^\s@]+@[^\s@]+\.[^\s@]+$"

CSV_DELIMITERS = (",", ";", "\t")
