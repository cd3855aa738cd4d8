import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./boxxpilot.db")

# Public base URL used for customer-facing quotation links
APP_PUBLIC_URL = os.getenv("APP_PUBLIC_URL", "http://localhost:8000")

# Start-window gate: an operative may start a job this many minutes before
# its scheduled start, and up to this many minutes after it
START_EARLY_WINDOW_MINUTES = int(os.getenv("START_EARLY_WINDOW_MINUTES", "15"))
START_LATE_WINDOW_MINUTES = int(os.getenv("START_LATE_WINDOW_MINUTES", "60"))

# Time after scheduled end during which an in-progress job may still be ended
# manually before the sweep marks it AUTO_ENDED
AUTO_END_GRACE_MINUTES = int(os.getenv("AUTO_END_GRACE_MINUTES", "30"))

# Auto-resolution sweep cadence (worker cron)
SWEEP_INTERVAL_SECONDS = int(os.getenv("SWEEP_INTERVAL_SECONDS", "60"))

# First quote/job number issued for a company
FIRST_SEQUENCE_NUMBER = int(os.getenv("FIRST_SEQUENCE_NUMBER", "1001"))

# CORS
ALLOWED_ORIGINS = os.getenv(
    "ALLOWED_ORIGINS",
    "http://localhost:8081,http://localhost:19006,http://localhost:3000",
).split(",")
