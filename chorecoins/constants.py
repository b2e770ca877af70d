"""
Application constants and environment-driven configuration.
"""
import enum
import os


class TaskStatus(str, enum.Enum):
    UPCOMING = "UPCOMING"
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    OVERDUE = "OVERDUE"


class Recurrence(str, enum.Enum):
    ONCE = "ONCE"
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"


class Difficulty(str, enum.Enum):
    EASY = "EASY"
    MEDIUM = "MEDIUM"
    HARD = "HARD"


class ActorType(str, enum.Enum):
    PARENT = "parent"
    CHILD = "child"
    ADMIN = "admin"
    SYSTEM = "system"


# Statuses a task can never leave
TERMINAL_STATUSES = (TaskStatus.APPROVED, TaskStatus.REJECTED)

# Statuses the daily respawn treats as "already materialized and processed"
RESPAWN_SOURCE_STATUSES = (
    TaskStatus.PENDING,
    TaskStatus.COMPLETED,
    TaskStatus.APPROVED,
    TaskStatus.REJECTED,
)

# Date / time formats
RECURRENCE_DATE_FORMAT = "%d-%m-%Y"  # DD-MM-YYYY
DUE_TIME_FORMAT = "%H:%M"
DEFAULT_DUE_TIME = "00:00"
DUE_TIME_PATTERN = r"^([01]?[0-9]|2[0-3]):[0-5][0-9]$"

# Recurrence cardinality
WEEKLY_MAX_DATES = 7

# Task fields
ALLOWED_DURATIONS = (5, 15, 30, 60, 120)  # minutes
TITLE_MIN_LENGTH = 2
TITLE_MAX_LENGTH = 100

# Rewards
DEFAULT_BASE_REWARD = 5
BASE_REWARDS = {
    "Making the bed": 5,
    "Washing the dishes": 10,
    "Helping in the garden": 20,
}
DIFFICULTY_MULTIPLIERS = {
    Difficulty.EASY: 1.0,
    Difficulty.MEDIUM: 1.5,
    Difficulty.HARD: 2.0,
}

# Streaks
STREAK_BONUS_THRESHOLD = 7
STREAK_BONUS_AMOUNT = 50

# Ledger transaction types
TRANSACTION_TASK_REWARD = "task_reward"
TRANSACTION_STREAK_BONUS = "streak_bonus"
TRANSACTION_CREDIT = "credit"
TRANSACTION_BLOG_REWARD = "blog_reward"
TRANSACTION_QUIZ_REWARD = "quiz_reward"
TRANSACTION_SPENDING = "spending"
TRANSACTION_INVESTMENT = "investment"

EARNING_TRANSACTION_TYPES = (
    TRANSACTION_TASK_REWARD,
    TRANSACTION_STREAK_BONUS,
    TRANSACTION_CREDIT,
    TRANSACTION_BLOG_REWARD,
    TRANSACTION_QUIZ_REWARD,
)
SPENDING_TRANSACTION_TYPES = (TRANSACTION_SPENDING, TRANSACTION_INVESTMENT)

# Notification types
NOTIFICATION_TASK_REMINDER = "task_reminder"
NOTIFICATION_TASK_UPDATE = "task_update"
NOTIFICATION_TASK_DELETION = "task_deletion"
NOTIFICATION_TASK_REJECTION = "task_rejection"
NOTIFICATION_TASK_COMPLETION = "task_completion"
NOTIFICATION_TASK_APPROVAL = "task_approval"
NOTIFICATION_STREAK_BONUS = "streak_bonus"
NOTIFICATION_ACHIEVEMENT = "achievement"

RECIPIENT_PARENT = "parent"
RECIPIENT_CHILD = "child"

RELATED_TASK = "task"
RELATED_ACHIEVEMENT = "achievement"

# Pagination
DEFAULT_PAGE_LIMIT = 10
MAX_PAGE_LIMIT = 100

# Scheduler defaults
DEFAULT_RECONCILIATION_TIME = "00:01"

# Environment configuration
DATABASE_URL = os.getenv("CHORES_DATABASE_URL", "sqlite:///./chorecoins.db")
TIMEZONE = os.getenv("CHORES_TIMEZONE", "Asia/Kolkata")
API_KEY = os.getenv("CHORES_API_KEY", "your-secret-key-change-me")

DEFAULT_LOG_DIRECTORY_PROD = "/var/log/chorecoins"
DEFAULT_LOG_DIRECTORY_DEV = "./logs"
LOG_DIR = os.getenv("CHORES_LOG_DIR", DEFAULT_LOG_DIRECTORY_PROD)
LOG_FILE = os.getenv("CHORES_LOG_FILE", "app.log")

CORS_ALLOWED_ORIGINS = [
    origin.strip()
    for origin in os.getenv(
        "CHORES_CORS_ORIGINS", "http://localhost:3000,http://localhost:5173"
    ).split(",")
    if origin.strip()
]
