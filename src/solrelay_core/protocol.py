"""solrelay protocol constants.

Single source of truth for instruction tags, wire layouts and pacing values.
Keep this file stable. Uploader, validator and watcher must remain synchronized
with the on-chain programs.
"""

# Instruction discriminators (8-byte Anchor tags)
LOAD_PROOF_DISCRIMINATOR = bytes([34, 145, 85, 9, 72, 98, 17, 92])
VALIDATE_PROOF_DISCRIMINATOR = bytes([164, 39, 169, 90, 192, 26, 173, 8])
DISCRIMINATOR_LEN = 8

# Chunk instruction: [Discriminator(8) | Length(4, LE)] + chunk bytes = 12 byte header
CHUNK_HEADER_FMT = "<8sI"
CHUNK_HEADER_LEN = 12

# Well-known program identities
PROVER_PROGRAM_ID = "CdvSq48QUukYuMczgZAVNZrwcHNshBdtqrjW26sQiGPs"
RELAY_PROGRAM_ID = "J8T7Dg51zWifVfd4H4G61AaVtmW7GqegHx3h7a59hKSa"
LOGGER_PROGRAM_ID = "GErKGy2MUyTZgXLxAhpmdThpH39YhJGRbbEkfezL9zNL"
SYSVAR_INSTRUCTIONS_ID = "Sysvar1nstructions1111111111111111111111111"

# Derived address seeds
INTERNAL_SEED = b"internal"
LOGGER_SEED = b"logger"

# Source chain id of Solana in the proving service's numbering
SOLANA_CHAIN_ID = 2

# Proof job polling (seconds)
POLL_INITIAL_DELAY = 2.0
POLL_BACKOFF_FACTOR = 1.5
POLL_MAX_DELAY = 10.0
POLL_MAX_ATTEMPTS = 20

# Chunk upload
DEFAULT_CHUNK_COUNT = 4
INTER_TX_DELAY = 2.0

# Validation resource budget
COMPUTE_UNIT_LIMIT = 1_400_000
COMPUTE_UNIT_PRICE = 10_000  # micro-lamports

# Event relay
RELAY_POLL_INTERVAL = 5.0
RELAY_BATCH_LIMIT = 10
RELAY_SEEN_WINDOW = 1024
LOG_KEY_VALUE_MARKER = "Program log: Instruction: LogKeyValue"
