"""Monitoring configuration for the review engine."""
from prometheus_client import Counter, Gauge, start_http_server

# Answer metrics
answers_submitted = Counter(
    "lingolearn_answers_submitted_total",
    "Total number of answers applied to word records",
    ["outcome"],
)

mastery_transitions = Counter(
    "lingolearn_mastery_transitions_total",
    "Mastery level changes caused by answers",
    ["direction"],  # promoted / demoted
)

# Session metrics
sessions_folded = Counter(
    "lingolearn_sessions_folded_total",
    "Total number of sessions folded into daily progress",
    ["mode"],
)

# Streak metrics
current_streak = Gauge(
    "lingolearn_current_streak_days",
    "Current continuous study streak in days",
)

streak_resets = Counter(
    "lingolearn_streak_resets_total",
    "Total number of times the streak restarted after a gap",
)

streak_freezes_used = Counter(
    "lingolearn_streak_freezes_used_total",
    "Total number of streak freezes consumed",
)

streak_freezes_awarded = Counter(
    "lingolearn_streak_freezes_awarded_total",
    "Total number of streak freezes earned",
)

# Database metrics
concurrency_conflicts = Counter(
    "lingolearn_concurrency_conflicts_total",
    "Total number of lost updates detected at commit",
)


def start_monitoring(port: int = 9090) -> None:
    """Start the Prometheus metrics server."""
    start_http_server(port)
