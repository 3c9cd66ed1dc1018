"""Constants shared across tests."""

AUTHORITY = "OracleAuthority111111111111111111111111111"
FEED_AUTHORITY = "SwitchboardProgram11111111111111111111111"
NOW = 1_700_000_000
