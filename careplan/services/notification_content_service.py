"""Reminder notification content: title classification, display text and spoken phrases."""

from __future__ import annotations

import enum
import re
from dataclasses import asdict, dataclass
from typing import Dict, List, Tuple


class ReminderCategory(str, enum.Enum):
    MEDICATION = "medication"
    EXERCISE = "exercise"
    NUTRITION = "nutrition"
    MONITORING = "monitoring"
    WELLNESS = "wellness"
    APPOINTMENT = "appointment"
    GENERAL = "general"


# 日本語: 先に一致したバケットのみ採用 (順序に意味がある) / English: First matching bucket wins, order matters
_KEYWORD_BUCKETS: List[Tuple[ReminderCategory, Tuple[str, ...]]] = [
    (ReminderCategory.MEDICATION, ("take", "medicine", "pill", "tablet", "medication")),
    (ReminderCategory.EXERCISE, ("exercise", "workout", "walk", "run", "gym")),
    (
        ReminderCategory.NUTRITION,
        ("eat", "meal", "food", "drink", "water", "breakfast", "lunch", "dinner"),
    ),
    (ReminderCategory.MONITORING, ("check", "monitor", "measure", "pressure", "sugar", "glucose")),
    (ReminderCategory.WELLNESS, ("sleep", "rest", "bed", "meditation", "relax", "breathe")),
    (ReminderCategory.APPOINTMENT, ("doctor", "appointment", "visit")),
]


@dataclass(frozen=True)
class NotificationContent:
    emoji: str
    heading: str
    body: str
    action_hint: str
    accent_color: str

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)


def classify(title: str) -> ReminderCategory:
    """Classify a task title into a reminder category."""
    text = (title or "").casefold()
    for category, keywords in _KEYWORD_BUCKETS:
        if any(keyword in text for keyword in keywords):
            return category
    return ReminderCategory.GENERAL


def build_display_content(title: str, description: str = "") -> NotificationContent:
    category = classify(title)
    if category is ReminderCategory.MEDICATION:
        return NotificationContent(
            emoji="💊",
            heading="Medication Reminder",
            body=f"Time to take your medicine: {title}",
            action_hint="Tap to mark as taken",
            accent_color="#2196F3",
        )
    if category is ReminderCategory.EXERCISE:
        return NotificationContent(
            emoji="🏃",
            heading="Exercise Time",
            body=f"Let's get moving: {title}",
            action_hint="Tap to start your workout session",
            accent_color="#4CAF50",
        )
    if category is ReminderCategory.NUTRITION:
        return NotificationContent(
            emoji="🍎",
            heading="Nutrition Reminder",
            body=f"Time for healthy eating: {title}",
            action_hint="Tap to log your meal",
            accent_color="#FF9800",
        )
    if category is ReminderCategory.MONITORING:
        return NotificationContent(
            emoji="📊",
            heading="Health Monitoring",
            body=f"Time for health check: {title}",
            action_hint="Tap to record your readings",
            accent_color="#9C27B0",
        )
    if category is ReminderCategory.WELLNESS:
        return NotificationContent(
            emoji="😴",
            heading="Wellness Reminder",
            body=f"Time to focus on wellbeing: {title}",
            action_hint="Tap to complete this activity",
            accent_color="#00BCD4",
        )
    if category is ReminderCategory.APPOINTMENT:
        return NotificationContent(
            emoji="🩺",
            heading="Appointment Reminder",
            body=f"Upcoming visit: {title}",
            action_hint="Tap to view the details",
            accent_color="#3F51B5",
        )
    body = title
    if description and description.strip():
        body = f"{title}\n{description.strip()}"
    return NotificationContent(
        emoji="⚕️",
        heading="Health Reminder",
        body=body,
        action_hint="Tap to mark as completed",
        accent_color="#607D8B",
    )


_WORD_PATTERN = re.compile(r"[A-Za-z0-9][A-Za-z0-9'\-]*")
_MEDICINE_FILLER = {
    "take", "taking", "medicine", "medicines", "medication", "medications",
    "pill", "pills", "tablet", "tablets", "your", "the", "a", "an", "my", "dose", "of",
}
# 日本語: 薬名の後ろに来る語で切る ("before breakfast" など) / English: Cut the medicine name at timing words
_MEDICINE_STOP_WORDS = {"before", "after", "with", "at", "in", "on", "during", "when", "and", "daily", "twice", "once"}

_ACTIVITY_NAMES = (
    ("walk", "walk"),
    ("jog", "jog"),
    ("run", "run"),
    ("yoga", "yoga"),
    ("swim", "swim"),
    ("cycl", "cycling session"),
    ("stretch", "stretching"),
    ("gym", "gym workout"),
    ("workout", "workout"),
)
_MEAL_NAMES = ("breakfast", "lunch", "dinner", "snack", "water")
_METRIC_NAMES = (
    ("blood pressure", "blood pressure"),
    ("pressure", "blood pressure"),
    ("glucose", "blood sugar"),
    ("sugar", "blood sugar"),
    ("weight", "weight"),
    ("heart rate", "heart rate"),
    ("pulse", "heart rate"),
    ("temperature", "temperature"),
    ("oxygen", "oxygen level"),
)


def extract_medicine_name(title: str) -> str:
    words: List[str] = []
    for word in _WORD_PATTERN.findall(title or ""):
        lowered = word.casefold()
        if lowered in _MEDICINE_STOP_WORDS:
            if words:
                break
            continue
        if lowered in _MEDICINE_FILLER:
            continue
        words.append(word)
    return " ".join(words) if words else "prescribed"


def extract_activity_name(title: str) -> str:
    text = (title or "").casefold()
    for keyword, name in _ACTIVITY_NAMES:
        if keyword in text:
            return name
    return "exercise session"


def extract_meal_name(title: str) -> str:
    text = (title or "").casefold()
    for name in _MEAL_NAMES:
        if name in text:
            return name
    return "meal"


def extract_metric_name(title: str) -> str:
    text = (title or "").casefold()
    for keyword, name in _METRIC_NAMES:
        if keyword in text:
            return name
    return "health parameters"


def build_spoken_message(title: str) -> str:
    """Friendly second-person phrase read aloud when a reminder fires."""
    category = classify(title)
    clean_title = (title or "").strip() or "your task"
    if category is ReminderCategory.MEDICATION:
        medicine = extract_medicine_name(title)
        return f"Hello! It's time to take your {medicine} medicine. Please don't skip it, your health matters."
    if category is ReminderCategory.EXERCISE:
        activity = extract_activity_name(title)
        return f"Time to get moving! Let's start your {activity} now. You've got this!"
    if category is ReminderCategory.NUTRITION:
        meal = extract_meal_name(title)
        if meal == "water":
            return "Stay hydrated! It's time to drink a glass of water."
        return f"It's time for your {meal}. Eating well keeps you strong."
    if category is ReminderCategory.MONITORING:
        metric = extract_metric_name(title)
        return f"Please take a moment to check your {metric} and note down the reading."
    if category is ReminderCategory.WELLNESS:
        return f"Time to relax and take care of yourself. {clean_title}."
    if category is ReminderCategory.APPOINTMENT:
        return f"Just a reminder, you have {clean_title} coming up. Please get ready on time."
    return f"Friendly reminder: it's time for {clean_title}."


def build_daily_summary(total: int, completed: int, pending: int) -> NotificationContent:
    """End-of-day progress content based on the completion rate."""
    rate = (completed * 100) // total if total > 0 else 0
    if rate >= 90:
        emoji, heading = "🎉", "Excellent Progress!"
    elif rate >= 70:
        emoji, heading = "👏", "Great Job Today!"
    elif rate >= 50:
        emoji, heading = "👍", "Good Progress!"
    elif rate >= 30:
        emoji, heading = "💪", "Keep Going!"
    else:
        emoji, heading = "🌟", "New Day, New Opportunities!"
    body = (
        "Today's Health Summary:\n"
        f"✅ Completed: {completed} tasks\n"
        f"⏰ Pending: {pending} tasks\n"
        f"📊 Completion Rate: {rate}%"
    )
    return NotificationContent(
        emoji=emoji,
        heading=heading,
        body=body,
        action_hint=f"{completed}/{total} tasks completed ({rate}%)",
        accent_color="#4CAF50",
    )


__all__ = [
    "ReminderCategory",
    "NotificationContent",
    "classify",
    "build_display_content",
    "build_spoken_message",
    "build_daily_summary",
    "extract_medicine_name",
    "extract_activity_name",
    "extract_meal_name",
    "extract_metric_name",
]
