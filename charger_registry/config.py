import os

# Registry API configuration
REGISTRY_HOST = os.getenv("REGISTRY_HOST", "0.0.0.0")
REGISTRY_PORT = int(os.getenv("REGISTRY_PORT", "8000"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Ledger anchoring (simulated)
# Explorer links are built as f"{EXPLORER_BASE_URL}/tx/{transaction_hash}"
EXPLORER_BASE_URL = os.getenv("EXPLORER_BASE_URL", "https://vppscan.com").rstrip("/")

# Probability (0..1) that the simulated anchor reports a failed commit
ANCHOR_FAILURE_RATE = min(max(float(os.getenv("ANCHOR_FAILURE_RATE", "0.0")), 0.0), 1.0)

# Start the registry with the two demo chargers
SEED_DEMO_DEVICES = os.getenv("SEED_DEMO_DEVICES", "true").lower() in ("1", "true", "yes")
