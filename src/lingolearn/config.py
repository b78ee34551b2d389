"""Configuration settings for the review engine."""
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv

# Load environment variables from .env file
env_file = ".env.test" if os.getenv("ENV") == "test" else ".env"
load_dotenv(env_file)


# Define data directories from environment variables
DATA_DIR = Path(os.getenv("DATA_DIR", "./data"))
LOG_DIR = os.getenv("LOG_DIR", None)

# Spaced repetition defaults
DEFAULT_EASE_FACTOR = 2.5
MIN_EASE_FACTOR = 1.3
RETRY_HOURS = 4  # unknown answers resurface after this many hours


def ensure_directories() -> None:
    """Ensure all required directories exist."""
    directories = [DATA_DIR]
    if LOG_DIR:
        directories.append(Path(LOG_DIR))

    for directory in directories:
        directory.mkdir(parents=True, exist_ok=True)


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


@dataclass
class DatabaseSettings:
    """Database configuration settings."""
    url: str = field(default_factory=lambda: os.getenv("DATABASE_URL", "sqlite:///lingolearn.db"))
    echo: bool = field(default_factory=lambda: _env_bool("DATABASE_ECHO", "false"))


@dataclass
class LoggingSettings:
    """Logging configuration settings."""
    level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    dir: Optional[str] = field(default_factory=lambda: os.getenv("LOG_DIR", None))
    rotation: str = field(default_factory=lambda: os.getenv("LOG_ROTATION", "midnight"))
    interval: int = field(default_factory=lambda: int(os.getenv("LOG_INTERVAL", "1")))
    backup_count: int = field(default_factory=lambda: int(os.getenv("LOG_BACKUP_COUNT", "7")))


@dataclass
class CalendarSettings:
    """How wall-clock moments map onto study days."""
    timezone: str = field(default_factory=lambda: os.getenv("STUDY_TIMEZONE", "UTC"))
    day_start_hour: int = field(default_factory=lambda: int(os.getenv("DAY_START_HOUR", "0")))

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


@dataclass
class MasterySettings:
    """Thresholds for climbing the mastery ladder."""
    times_studied_for_reviewing: int = field(
        default_factory=lambda: int(os.getenv("TIMES_STUDIED_FOR_REVIEWING", "3"))
    )
    accuracy_for_reviewing: float = field(
        default_factory=lambda: float(os.getenv("ACCURACY_FOR_REVIEWING", "0.6"))
    )
    times_studied_for_mastered: int = field(
        default_factory=lambda: int(os.getenv("TIMES_STUDIED_FOR_MASTERED", "5"))
    )
    accuracy_for_mastered: float = field(
        default_factory=lambda: float(os.getenv("ACCURACY_FOR_MASTERED", "0.8"))
    )
    min_times_studied_for_learning: int = field(
        default_factory=lambda: int(os.getenv("MIN_TIMES_STUDIED_FOR_LEARNING", "3"))
    )


@dataclass
class SchedulingSettings:
    """Review interval settings."""
    default_ease_factor: float = DEFAULT_EASE_FACTOR
    min_ease_factor: float = MIN_EASE_FACTOR
    known_quality: int = 4
    easy_quality: int = 5
    unknown_quality: int = 1
    retry_hours: int = field(default_factory=lambda: int(os.getenv("RETRY_HOURS", str(RETRY_HOURS))))
    min_interval_days: int = field(default_factory=lambda: int(os.getenv("MIN_INTERVAL_DAYS", "1")))
    max_interval_days: int = field(default_factory=lambda: int(os.getenv("MAX_INTERVAL_DAYS", "365")))
    due_soon_hours: int = field(default_factory=lambda: int(os.getenv("DUE_SOON_HOURS", "24")))
    forecast_days: int = field(default_factory=lambda: int(os.getenv("FORECAST_DAYS", "7")))
    queue_limit: int = field(default_factory=lambda: int(os.getenv("QUEUE_LIMIT", "20")))


@dataclass
class StreakSettings:
    """Streak and streak freeze settings."""
    freeze_award_every_days: int = field(
        default_factory=lambda: int(os.getenv("STREAK_FREEZE_AWARD_EVERY_DAYS", "7"))
    )
    max_streak_freezes: int = field(default_factory=lambda: int(os.getenv("MAX_STREAK_FREEZES", "3")))
    initial_streak_freezes: int = field(
        default_factory=lambda: int(os.getenv("INITIAL_STREAK_FREEZES", "2"))
    )
    auto_apply_freeze: bool = field(
        default_factory=lambda: _env_bool("STREAK_AUTO_APPLY_FREEZE", "false")
    )


@dataclass
class GoalSettings:
    """Daily goal settings."""
    default_daily_goal: int = field(default_factory=lambda: int(os.getenv("DAILY_GOAL", "20")))
    min_daily_goal: int = 10
    max_daily_goal: int = 100


@dataclass
class MonitoringSettings:
    """Prometheus exporter settings."""
    enabled: bool = field(default_factory=lambda: _env_bool("MONITORING_ENABLED", "false"))
    port: int = field(default_factory=lambda: int(os.getenv("MONITORING_PORT", "9090")))


@dataclass
class Settings:
    """Main settings class that combines all configuration settings."""
    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)
    calendar: CalendarSettings = field(default_factory=CalendarSettings)
    mastery: MasterySettings = field(default_factory=MasterySettings)
    scheduling: SchedulingSettings = field(default_factory=SchedulingSettings)
    streak: StreakSettings = field(default_factory=StreakSettings)
    goal: GoalSettings = field(default_factory=GoalSettings)
    monitoring: MonitoringSettings = field(default_factory=MonitoringSettings)

    def validate(self) -> None:
        """Validate settings and raise ValueError if invalid."""
        try:
            self.calendar.tzinfo
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"STUDY_TIMEZONE is not a known time zone: {self.calendar.timezone}") from e

        if not 0 <= self.calendar.day_start_hour <= 23:
            raise ValueError("DAY_START_HOUR must be between 0 and 23")

        for name, value in (
            ("ACCURACY_FOR_REVIEWING", self.mastery.accuracy_for_reviewing),
            ("ACCURACY_FOR_MASTERED", self.mastery.accuracy_for_mastered),
        ):
            if value < 0 or value > 1:
                raise ValueError(f"{name} must be between 0 and 1")

        if self.mastery.times_studied_for_reviewing > self.mastery.times_studied_for_mastered:
            raise ValueError("TIMES_STUDIED_FOR_REVIEWING cannot be greater than TIMES_STUDIED_FOR_MASTERED")

        if self.scheduling.min_ease_factor <= 0:
            raise ValueError("Minimum ease factor must be positive")

        if self.scheduling.min_interval_days < 1:
            raise ValueError("MIN_INTERVAL_DAYS must be at least 1")

        if self.scheduling.min_interval_days > self.scheduling.max_interval_days:
            raise ValueError("MIN_INTERVAL_DAYS cannot be greater than MAX_INTERVAL_DAYS")

        if self.scheduling.retry_hours <= 0 or \
           self.scheduling.retry_hours >= self.scheduling.min_interval_days * 24:
            raise ValueError("RETRY_HOURS must be positive and shorter than MIN_INTERVAL_DAYS")

        if self.scheduling.forecast_days < 1:
            raise ValueError("FORECAST_DAYS must be positive")

        if self.streak.freeze_award_every_days < 1:
            raise ValueError("STREAK_FREEZE_AWARD_EVERY_DAYS must be positive")

        if self.streak.initial_streak_freezes < 0 or self.streak.max_streak_freezes < 0:
            raise ValueError("Streak freeze counts cannot be negative")

        if self.streak.initial_streak_freezes > self.streak.max_streak_freezes:
            raise ValueError("INITIAL_STREAK_FREEZES cannot be greater than MAX_STREAK_FREEZES")

        if self.goal.default_daily_goal < self.goal.min_daily_goal or \
           self.goal.default_daily_goal > self.goal.max_daily_goal:
            raise ValueError("DAILY_GOAL must be between 10 and 100")


# Create global settings instance
settings = Settings()
settings.validate()
