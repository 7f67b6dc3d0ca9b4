import os
import sys

from dotenv import load_dotenv
from loguru import logger

load_dotenv()

LOG_DIR = os.getenv("LOG_DIR", "logs")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Create folder if missing
if not os.path.exists(LOG_DIR):
    os.makedirs(LOG_DIR)

# Remove default handler
logger.remove()

logger.add(sys.stderr, level=LOG_LEVEL)

# General application log
logger.add(
    f"{LOG_DIR}/app.log",
    rotation="1 week",
    retention="4 weeks",
    level=LOG_LEVEL,
    enqueue=True,
    format="{time} | {level} | {message}"
)

# Booking logs
logger.add(
    f"{LOG_DIR}/bookings.log",
    rotation="1 week",
    retention="4 weeks",
    level="INFO",
    enqueue=True,
    filter=lambda record: record["extra"].get("log_type") == "booking",
    format="{time} | {level} | {message}"
)

# Payment logs
logger.add(
    f"{LOG_DIR}/payments.log",
    rotation="1 week",
    retention="12 weeks",
    level="INFO",
    enqueue=True,
    filter=lambda record: record["extra"].get("log_type") == "payment",
    format="{time} | {level} | {message}"
)

# Admin activity logs (bulk deletes, overrides, reports)
logger.add(
    f"{LOG_DIR}/admin.log",
    rotation="1 week",
    retention="4 weeks",
    level="INFO",
    enqueue=True,
    filter=lambda record: record["extra"].get("log_type") == "admin",
    format="{time} | {level} | {message}"
)

# Error logs
logger.add(
    f"{LOG_DIR}/errors.log",
    rotation="1 week",
    retention="8 weeks",
    level="ERROR",
    enqueue=True,
    backtrace=True,
)


def get_logger():
    return logger


booking_logger = logger.bind(log_type="booking")
payment_logger = logger.bind(log_type="payment")
admin_logger = logger.bind(log_type="admin")
