from __future__ import annotations

from dataclasses import dataclass
from datetime import date


@dataclass(frozen=True)
class Quote:
    text: str
    author: str


QUOTES: tuple[Quote, ...] = (
    Quote("The expert in anything was once a beginner.", "Helen Hayes"),
    Quote("Success is the sum of small efforts repeated day in and day out.", "Robert Collier"),
    Quote("Don't watch the clock; do what it does. Keep going.", "Sam Levenson"),
    Quote("The future depends on what you do today.", "Mahatma Gandhi"),
    Quote("Education is the most powerful weapon you can use to change the world.", "Nelson Mandela"),
    Quote("The only way to do great work is to love what you do.", "Steve Jobs"),
)

TIPS: tuple[str, ...] = (
    "Take a 5-minute break every 25 minutes to maintain focus",
    "Review your notes within 24 hours to improve retention",
    "Set specific, measurable goals for each study session",
    "Create a dedicated study space free from distractions",
    "Use active recall instead of just re-reading notes",
    "Study during your peak energy hours for better results",
)


@dataclass(frozen=True)
class DailyMotivation:
    quote: Quote
    tip: str


def daily_motivation(today: date) -> DailyMotivation:
    # same pick for everyone on a given calendar day
    return DailyMotivation(
        quote=QUOTES[today.day % len(QUOTES)],
        tip=TIPS[today.day % len(TIPS)],
    )
