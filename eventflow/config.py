import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

# Storage backend: "sql" uses DATABASE_URL, "supabase" talks to the hosted REST API
STORE_BACKEND = os.getenv("STORE_BACKEND", "sql").lower()
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./eventflow.db")

# Supabase (backend-as-a-service) Configuration
SUPABASE_URL = os.getenv("SUPABASE_URL", "")
SUPABASE_KEY = os.getenv("SUPABASE_KEY", "")
STORE_TIMEOUT = float(os.getenv("STORE_TIMEOUT", "15"))

# Redis is optional - the in-memory cache is used when REDIS_URL is unset
REDIS_URL = os.getenv("REDIS_URL")
ROSTER_CACHE_TTL = int(os.getenv("ROSTER_CACHE_TTL", "300"))  # 5 minutes

# Calendar behaviour
OVERFLOW_TEAM_ID = os.getenv("OVERFLOW_TEAM_ID", "team-11")
# When false, a failed delete leaves the event removed from the local list
ROLLBACK_DELETES = os.getenv("ROLLBACK_DELETES", "true").lower() == "true"
DEDUP_DELAY_SECONDS = float(os.getenv("DEDUP_DELAY_SECONDS", "3"))
DEDUP_ON_STARTUP = os.getenv("DEDUP_ON_STARTUP", "true").lower() == "true"
# Dates whose assignment lists are kept in memory, most recently used first
ASSIGNMENT_DATES_KEPT = int(os.getenv("ASSIGNMENT_DATES_KEPT", "31"))

# Column sizing defaults (pixels)
MIN_COLUMN_WIDTH = int(os.getenv("MIN_COLUMN_WIDTH", "120"))
MAX_COLUMN_WIDTH = int(os.getenv("MAX_COLUMN_WIDTH", "250"))

API_VERSION = "1.0.0"
