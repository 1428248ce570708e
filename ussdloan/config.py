import os
from decimal import Decimal
from dotenv import load_dotenv

load_dotenv()

# MySQL Configuration
MYSQL_USER = os.getenv("MYSQL_USER", "root")
MYSQL_PASSWORD = os.getenv("MYSQL_PASSWORD", "")
MYSQL_HOST = os.getenv("MYSQL_HOST", "localhost")
MYSQL_PORT = os.getenv("MYSQL_PORT", "3306")
MYSQL_DB = os.getenv("MYSQL_DB", "ussd_db")

DATABASE_URL = os.getenv(
    "DATABASE_URL",
    f"mysql://{MYSQL_USER}:{MYSQL_PASSWORD}@{MYSQL_HOST}:{MYSQL_PORT}/{MYSQL_DB}"
)

# Service
SERVICE_NAME = os.getenv("SERVICE_NAME", "Sika Loan")
CURRENCY = os.getenv("CURRENCY", "GHS")

# Loan terms
INTEREST_RATE = Decimal(os.getenv("INTEREST_RATE", "0.10"))  # simple interest per term
LOAN_TERM_DAYS = int(os.getenv("LOAN_TERM_DAYS", "30"))
MIN_LOAN_AMOUNT = Decimal(os.getenv("MIN_LOAN_AMOUNT", "10"))
MAX_LOAN_AMOUNT = Decimal(os.getenv("MAX_LOAN_AMOUNT", "1000"))
LOAN_INITIAL_STATUS = os.getenv("LOAN_INITIAL_STATUS", "active")  # "active" or "pending"

# Sessions idle longer than this are treated as abandoned
SESSION_TTL_SECONDS = int(os.getenv("SESSION_TTL_SECONDS", "300"))

# Identity formats
PHONE_PREFIX = os.getenv("PHONE_PREFIX", "233")
NATIONAL_ID_PREFIX = os.getenv("NATIONAL_ID_PREFIX", "GHA")

# SMS gateway
SMS_URL = os.getenv("SMS_URL")
SMS_TEMPLATE = os.getenv(
    "SMS_TEMPLATE",
    "Dear {customer}, your loan of {currency} {amount} has been received. "
    "Total to repay: {currency} {total} by {due_date}."
)
SENDER_ID = os.getenv("SENDER_ID")
API_KEY = os.getenv("API_KEY")
CLIENT_ID = os.getenv("CLIENT_ID")
ACCESS_KEY = os.getenv("ACCESS_KEY")
SMS_TIMEOUT_SECONDS = int(os.getenv("SMS_TIMEOUT_SECONDS", "10"))
