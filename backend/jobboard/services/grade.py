"""Loyalty grade derived from a user's cumulative paid ad days."""

from dataclasses import dataclass

# (minimum days, grade, label), highest first
GRADE_THRESHOLDS = (
    (360, "diamond", "Diamond"),
    (180, "gold", "Gold"),
    (90, "silver", "Silver"),
    (30, "bronze", "Bronze"),
)


@dataclass(frozen=True)
class AdGrade:
    grade: str
    label: str
    total_days: int


def get_ad_grade(total_paid_ad_days: int) -> AdGrade:
    days = max(0, total_paid_ad_days)
    for minimum, grade, label in GRADE_THRESHOLDS:
        if days >= minimum:
            return AdGrade(grade=grade, label=label, total_days=days)
    return AdGrade(grade="none", label="", total_days=days)
