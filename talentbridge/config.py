import os
from pathlib import Path
from dotenv import load_dotenv

# Look for .env at the project root first, then the current directory
ROOT_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = ROOT_DIR / ".env"

if ENV_PATH.exists():
    load_dotenv(dotenv_path=ENV_PATH)
else:
    load_dotenv()

# Database
MONGO_URI = os.getenv("MONGO_URI")
DATABASE_NAME = os.getenv("DATABASE_NAME", "talentbridge")

# Tokens (issued by the auth service, verified here)
SECRET_KEY = os.getenv("SECRET_KEY", "super_secret_random_key_CHANGE_THIS")
ALGORITHM = os.getenv("ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", 30))

# CORS
ALLOWED_ORIGINS = [o.strip() for o in os.getenv("ALLOWED_ORIGINS", "").split(",") if o.strip()]

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Business rules
DEFAULT_CREDITS = int(os.getenv("DEFAULT_CREDITS", 5))
JOB_EDIT_WINDOW_HOURS = int(os.getenv("JOB_EDIT_WINDOW_HOURS", 4))
FOLLOW_UP_DAYS = int(os.getenv("FOLLOW_UP_DAYS", 45))
MAX_SALARY_SPREAD = int(os.getenv("MAX_SALARY_SPREAD", 10000))
ADMISSION_SWEEP_SECONDS = int(os.getenv("ADMISSION_SWEEP_SECONDS", 60))
