"""Command line entry point for inspecting and maintaining review state."""
import argparse
import logging
import sys
from typing import List, Optional

from lingolearn.config import ensure_directories, settings
from lingolearn.logging_config import setup_logging
from lingolearn.models.base import SessionLocal, init_db
from lingolearn.monitoring import start_monitoring
from lingolearn.services.learning_service import LearningService

logger = logging.getLogger("lingolearn")


def _print_words(words) -> None:
    if not words:
        print("Nothing due.")
        return
    for word in words:
        due = word.next_review_date.isoformat() if word.next_review_date else "-"
        print(f"{word.id:>5}  {word.english:<20} {word.mastery_level.value:<10} {due}")


def cmd_init_db(service: LearningService, args: argparse.Namespace) -> int:
    # Tables are created before the command runs
    print("Database initialized.")
    return 0


def cmd_due(service: LearningService, args: argparse.Namespace) -> int:
    if args.overdue:
        words = service.overdue_words(limit=args.limit)
    else:
        words = service.due_words(limit=args.limit)
    _print_words(words)
    return 0


def cmd_forecast(service: LearningService, args: argparse.Namespace) -> int:
    for day in service.forecast(days=args.days):
        marker = "*" if day.is_today else " "
        print(f"{marker} {day.day.isoformat()}  {day.count}")
    return 0


def cmd_stats(service: LearningService, args: argparse.Namespace) -> int:
    status = service.streak_status()
    print(f"Current streak: {status.current_streak} days (longest {status.longest_streak})")
    print(f"Streak freezes: {status.streak_freezes}")
    if status.at_risk:
        print("Streak at risk!" + (" A freeze can protect it." if status.freeze_applicable else ""))
    for level, count in service.mastery_breakdown().items():
        print(f"{level.value:<10} {count}")
    for day in service.daily_history(days=args.days):
        print(
            f"{day.date.isoformat()}  learned {day.words_learned}  reviewed {day.words_reviewed}  "
            f"{day.total_study_time / 60:.1f} min  {day.accuracy:.0f}%"
        )
    return 0


def cmd_use_freeze(service: LearningService, args: argparse.Namespace) -> int:
    if service.use_streak_freeze():
        print("Streak freeze used.")
        return 0
    print("No streak freeze could be applied.")
    return 1


def cmd_reset(service: LearningService, args: argparse.Namespace) -> int:
    if not args.yes:
        print("Refusing to reset without --yes.")
        return 1
    service.reset_progress()
    print("Learning progress reset.")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="lingolearn", description=__doc__)
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    subparsers = parser.add_subparsers(dest="command", required=True)

    init_parser = subparsers.add_parser("init-db", help="Create database tables")
    init_parser.set_defaults(func=cmd_init_db)

    due_parser = subparsers.add_parser("due", help="List words due for review")
    due_parser.add_argument("--limit", type=int, default=None)
    due_parser.add_argument("--overdue", action="store_true", help="Skip words still at NEW")
    due_parser.set_defaults(func=cmd_due)

    forecast_parser = subparsers.add_parser("forecast", help="Show upcoming review load")
    forecast_parser.add_argument("--days", type=int, default=settings.scheduling.forecast_days)
    forecast_parser.set_defaults(func=cmd_forecast)

    stats_parser = subparsers.add_parser("stats", help="Show streak and progress")
    stats_parser.add_argument("--days", type=int, default=7)
    stats_parser.set_defaults(func=cmd_stats)

    freeze_parser = subparsers.add_parser("use-freeze", help="Spend a streak freeze on yesterday")
    freeze_parser.set_defaults(func=cmd_use_freeze)

    reset_parser = subparsers.add_parser("reset", help="Clear all learning progress")
    reset_parser.add_argument("--yes", action="store_true")
    reset_parser.set_defaults(func=cmd_reset)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    ensure_directories()
    setup_logging(level=args.log_level)
    if settings.monitoring.enabled:
        start_monitoring(settings.monitoring.port)

    init_db()
    logger.debug(f"Running command {args.command}")
    db = SessionLocal()
    try:
        return args.func(LearningService(db), args)
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
