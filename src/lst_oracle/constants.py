"""Oracle limits and feed defaults."""

# Feed validation
MAX_FEED_DATA_AGE = 300  # 5 minutes
PRICE_CONFIDENCE_BOUND = 0.80  # absolute, in price units
APY_CONFIDENCE_BOUND = 0.001  # relative to the reported APY

# Ledger
PRICE_CHANGE_LIMIT = 0.20  # 20%

# Registry
MAX_ASSETS = 10
MAX_ASSETS_HARD_LIMIT = 64

# Packed multi-asset feed: one (price, apy) pair per liquid staking token
PACKED_FEED_ASSET_COUNT = 6
PACKED_FEED_VALUE_COUNT = PACKED_FEED_ASSET_COUNT * 2

# Scaled decimal bounds
I128_MIN = -(2**127)
I128_MAX = 2**127 - 1
I32_MIN = -(2**31)
I32_MAX = 2**31 - 1

# Switchboard devnet defaults
DEVNET_AGGREGATOR_PUBKEY = "4NiWaTuje7SVe9DN1vfnX7m1qBC7DnUxwRxbdgEDUGX1"
SOL_PRICE_AGGREGATOR_PUBKEY = "GvDMxPzN1sCj7L26YDK2HnMRXEQmQ2aemov8YBtPS7vR"
SWITCHBOARD_PROGRAM_ID = "Aio4gaXjXzJNVLtzwtNVmSqGKpANtXhybbkhtAC94ji2"

DEFAULT_STATE_PATH = "lst-oracle-state.json"

# Feed source HTTP retries
FEED_RETRY_STATUS_CODES = frozenset({429, 500, 502, 503, 504})
