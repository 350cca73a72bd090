from shared.config import settings

AGENT_NAME = "scanner"
SCANNER_VERSION = "1.0.0"

# Time budget
SCAN_DEADLINE_SECONDS = settings.SCAN_DEADLINE_SECONDS
SUBTASK_TIMEOUT_SECONDS = settings.SUBTASK_TIMEOUT_SECONDS
PROVIDER_TIMEOUT_SECONDS = settings.PROVIDER_TIMEOUT_SECONDS

# Fees
HIDDEN_FEE_THRESHOLD_PCT = 10.0   # max fee above this => hidden_fees / high_fees
DEFAULT_COOLDOWN_SECONDS = 60     # assumed when a cooldown marker is found

# Liquidity stability score
STABILITY_BASE = 50
STABILITY_LOCKED_BONUS = 30
STABILITY_TIER1_USD = 100_000
STABILITY_TIER1_BONUS = 10
STABILITY_TIER2_USD = 1_000_000
STABILITY_TIER2_BONUS = 10

# Rug-pull indicators
LOW_LIQUIDITY_FLOOR_USD = 10_000
HOLDER_CONCENTRATION_PCT = 50.0
LOCKED_MIN_PCT = 50.0             # share of LP supply in lockers/burned to count as locked

# Social red flags
NEW_ACCOUNT_DAYS = 30
LOW_FOLLOWERS = 100
LARGE_ACCOUNT_FOLLOWERS = 10_000
MIN_COMMITS = 10
NEW_DOMAIN_DAYS = 30
SMALL_COMMUNITY_MEMBERS = 100
MIN_RECENT_POSTS = 3
MIN_PRESENCE_SIGNALS = 2
SENTIMENT_POSITIVE = 0.6
SENTIMENT_NEGATIVE = 0.4

# Threat scoring: component weights (renormalized over the components present)
SCORING_WEIGHTS = {
    "bytecode": 0.25,
    "social": 0.20,
    "liquidity": 0.30,
    "fees": 0.20,
    "cross_chain": 0.05,
}

# Risk floors applied after blending; these findings outrank liquidity bonuses
HONEYPOT_RISK_FLOOR = 85
UNRESTRICTED_MINT_RISK_FLOOR = 70

# Cross-chain correlation
CROSS_CHAIN_MIN_RISK = 51

# Risk labels (inclusive bands)
RISK_LABELS = {
    "safe": (0, 25),
    "caution": (26, 50),
    "danger": (51, 75),
    "critical": (76, 100),
}
