import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

# "production" enables the real 48h escrow window
ENVIRONMENT = os.getenv("ENVIRONMENT", "development").lower()
IS_PRODUCTION = ENVIRONMENT == "production"

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./carepay.db")

# Escrow Configuration
# Share of the booking total paid out to the caregiver; the platform keeps the rest
CAREGIVER_SPLIT_RATIO = float(os.getenv("CAREGIVER_SPLIT_RATIO", "0.35"))
CURRENCY = os.getenv("CURRENCY", "eur")

# Delay before an unanswered booking is released (48h in production, 2 minutes elsewhere)
_DEFAULT_RELEASE_DELAY = 48 * 60 * 60 if IS_PRODUCTION else 2 * 60
RELEASE_DELAY_SECONDS = int(os.getenv("RELEASE_DELAY_SECONDS", str(_DEFAULT_RELEASE_DELAY)))

# "memory" keeps timers in the API process, "arq" defers a job in Redis
RELEASE_SCHEDULER_BACKEND = os.getenv("RELEASE_SCHEDULER_BACKEND", "memory").lower()

# Retention sweep for settled bookings
RETENTION_DAYS = int(os.getenv("RETENTION_DAYS", "30"))
RETENTION_SWEEP_HOUR = int(os.getenv("RETENTION_SWEEP_HOUR", "2"))  # UTC

# Stripe Connect Configuration
STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY")
STRIPE_API_URL = os.getenv("STRIPE_API_URL", "https://api.stripe.com/v1")
STRIPE_ACCOUNT_COUNTRY = os.getenv("STRIPE_ACCOUNT_COUNTRY", "NL")

# Twilio Configuration
TWILIO_ACCOUNT_SID = os.getenv("TWILIO_ACCOUNT_SID")
TWILIO_AUTH_TOKEN = os.getenv("TWILIO_AUTH_TOKEN")
TWILIO_PHONE_NUMBER = os.getenv("TWILIO_PHONE_NUMBER")
TWILIO_API_URL = os.getenv("TWILIO_API_URL", "https://api.twilio.com/2010-04-01")

# Public base URL used for Stripe onboarding refresh/return links
PUBLIC_BASE_URL = os.getenv("PUBLIC_BASE_URL", "http://localhost:10000")

# Keywords a customer can reply with to the satisfaction prompt
CONFIRM_KEYWORDS = {"YES", "JA"}
DISPUTE_KEYWORDS = {"NO", "NEE"}
