import os

# Settings are read at import time, so the environment must be in place first.
os.environ.setdefault("JWE_ENCRYPTION_KEY", "test-encryption-key-0123456789abcdef")
os.environ.setdefault("JWE_SIGNING_KEY", "test-signing-key-0123456789abcdefghij")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SEED_DEMO_USERS", "false")
os.environ.setdefault("CLEANUP_ENABLED", "false")
