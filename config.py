import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# ---------------------- ENV / CONFIG ----------------------
SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-change-me")
DATA_PATH = os.getenv("DATA_PATH", os.path.join(".", "data", "casino.json"))
DATABASE_URL = os.getenv("DATABASE_URL")  # optional, switches persistence to SQL
ADMIN_EMAILS = {e.strip().lower() for e in os.getenv("ADMIN_EMAILS", "").split(",") if e.strip()}
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
PORT = int(os.getenv("PORT", "8080"))

# Accounts / bonus
STARTING_BALANCE = int(os.getenv("STARTING_BALANCE", "5000"))
BONUS_MIN = int(os.getenv("BONUS_MIN", "1000"))
BONUS_MAX = int(os.getenv("BONUS_MAX", "3000"))
BONUS_VIP_MULTIPLIER = int(os.getenv("BONUS_VIP_MULTIPLIER", "2"))
BONUS_COOLDOWN_HOURS = int(os.getenv("BONUS_COOLDOWN_HOURS", "24"))

# Clans
CLAN_CREATION_COST = int(os.getenv("CLAN_CREATION_COST", "50000"))
WARNINGS_BEFORE_KICK = int(os.getenv("WARNINGS_BEFORE_KICK", "3"))

# Configurable bet caps
MAX_BET_SLOTS      = int(os.getenv("MAX_BET_SLOTS", "1000000"))
MAX_BET_ROCKET     = int(os.getenv("MAX_BET_ROCKET", "1000000"))
MAX_BET_BASKETBALL = int(os.getenv("MAX_BET_BASKETBALL", "1000000"))
ROCKET_MAX_MULTIPLIER = float(os.getenv("ROCKET_MAX_MULTIPLIER", "5.0"))
