import os

# --- Game Config ---
STARTING_BALANCE = 100
STAKE = 10
REWARD = 20
GUESS_RANGE = 100  # guesses and draws live in [0, GUESS_RANGE)

# no clamp by default: euint32 arithmetic wraps
BALANCE_FLOOR_AT_ZERO = os.getenv("ARENA_BALANCE_FLOOR_AT_ZERO", "0") == "1"

# --- Ledger Config ---
LEDGER_ADDRESS = os.getenv("ARENA_LEDGER_ADDRESS", "0x8A96542EBa91F74F69949374c3865C9D672734f5")
CHAIN_ID = int(os.getenv("ARENA_CHAIN_ID", "11155111"))
PROTOCOL_ID = 10001

# --- Decryption Oracle Config ---
DECRYPTION_DOMAIN_NAME = "Decryption"
DECRYPTION_DOMAIN_VERSION = "1"
DECRYPTION_VERIFYING_CONTRACT = "0x5D8BD78e2ea6bbE41f26dFe9fdaEAa349e077478"
MAX_DURATION_DAYS = 365
MAX_CONTRACT_ADDRESSES = 10
MAX_HANDLES_PER_REQUEST = 32
DEFAULT_DURATION_DAYS = 10
SECONDS_PER_DAY = 86400

# --- Auth Config ---
JWT_SECRET = os.getenv("ARENA_JWT_SECRET", "arena-dev-secret-change-me")
JWT_ALGORITHM = "HS256"
JWT_TTL_SECONDS = 60 * 60  # 1 hour
CHALLENGE_TTL_SECONDS = 5 * 60
MAX_PENDING_CHALLENGES = 10_000

# --- Global State (initialized as None, set at runtime) ---
coprocessor = None
acl = None
ledger = None
oracle = None
