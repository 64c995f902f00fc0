import os

# Settings are read at import time; the suite never talks to a real server
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test.db")
os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("COUNT_BATCH_CHUNK_DELAY_MS", "0")
