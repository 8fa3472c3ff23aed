from __future__ import annotations

import json
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import List, Optional

from .errors import ConfigError
from .models import ClassifierResult, Job
from .normalize import FULL_DAY, FULL_DAY_PATTERNS, HALF_DAY, HALF_DAY_PATTERNS, job_duration_kind


# Classifier behavior:
# - Subjects on the reject list lose even when the school/duration are perfect.
# - Blacklisted schools are not rejected outright: a full-day job there is still
#   sent for human review (uncertain match).
# - Half-day jobs only survive at nearby schools with an accepted subject.
# All matching is case-insensitive substring matching.

ACCEPT = "ACCEPT"
REJECT = "REJECT"
UNCERTAIN = "UNCERTAIN"


ACCEPTED_SCHOOL_LEVELS: list[str] = [
    "high school",
    "hs",
    "jr. high",
    "jr high",
    "junior high",
    "middle school",
    "intermediate",
]

REJECTED_SCHOOL_LEVELS: list[str] = [
    "elementary",
    "elem",
    "primary",
    "kindergarten",
    "pre-k",
    "preschool",
    "pre school",
]

# Schools that need a closer look before booking.
BLACKLISTED_SCHOOLS: list[str] = [
    "westlake high school",
    "westlake hs",
    "saratoga springs",
    "vista heights middle school",
    "vista heights",
]

# Short commute; half-day jobs here are still worth a look.
NEARBY_SCHOOLS: list[str] = [
    "timpanogos high school",
    "orem high school",
    "mountain view high school",
    "orem junior high",
    "canyon view junior high",
    "lakeridge junior high",
]

ACCEPTED_SUBJECTS: list[str] = [
    # History / social sciences
    "history",
    "us history",
    "world history",
    "american history",
    "european history",
    "government",
    "geography",
    "economics",
    "sociology",
    "psychology",
    "social studies",
    "political science",
    "civics",
    # English / language arts
    "english",
    "language arts",
    "ela",
    "literature",
    "writing",
    "composition",
    # Music (choir is rejected below)
    "band",
    "orchestra",
    "music",
    # Sciences
    "science",
    "biology",
    "chemistry",
    "physics",
    "earth science",
    "environmental science",
    "anatomy",
    "physiology",
    # Arts
    "art",
    "visual arts",
    "drawing",
    "painting",
    "ceramics",
    "drama",
    "theater",
    "theatre",
]

REJECTED_SUBJECTS: list[str] = [
    # Languages
    "spanish",
    "french",
    "german",
    "chinese",
    "japanese",
    "asl",
    "sign language",
    "esl",
    "ell",
    "english language learner",
    # Math / computer science
    "math",
    "mathematics",
    "algebra",
    "geometry",
    "calculus",
    "statistics",
    "computer science",
    "cs",
    "coding",
    "programming",
    # Choir
    "choir",
    "chorus",
    "choral",
    # Other
    "health",
    "pe",
    "physical education",
    "gym",
    "drivers ed",
    "driver education",
    "home economics",
    "special education",
    "sped",
]


@dataclass(frozen=True)
class FilterRules:
    accepted_subjects: List[str] = field(default_factory=lambda: list(ACCEPTED_SUBJECTS))
    rejected_subjects: List[str] = field(default_factory=lambda: list(REJECTED_SUBJECTS))
    accepted_school_levels: List[str] = field(default_factory=lambda: list(ACCEPTED_SCHOOL_LEVELS))
    rejected_school_levels: List[str] = field(default_factory=lambda: list(REJECTED_SCHOOL_LEVELS))
    blacklisted_schools: List[str] = field(default_factory=lambda: list(BLACKLISTED_SCHOOLS))
    nearby_schools: List[str] = field(default_factory=lambda: list(NEARBY_SCHOOLS))
    full_day_patterns: List[str] = field(default_factory=lambda: list(FULL_DAY_PATTERNS))
    half_day_patterns: List[str] = field(default_factory=lambda: list(HALF_DAY_PATTERNS))


DEFAULT_RULES = FilterRules()


def _contains_any(text: Optional[str], patterns: List[str]) -> bool:
    t = (text or "").lower()
    if not t:
        return False
    return any(p.lower() in t for p in patterns)


def subject_verdict(position: Optional[str], rules: FilterRules = DEFAULT_RULES) -> str:
    if _contains_any(position, rules.rejected_subjects):
        return REJECT
    if _contains_any(position, rules.accepted_subjects):
        return ACCEPT
    return UNCERTAIN


def school_level_verdict(school: Optional[str], rules: FilterRules = DEFAULT_RULES) -> str:
    if _contains_any(school, rules.rejected_school_levels):
        return REJECT
    if _contains_any(school, rules.accepted_school_levels):
        return ACCEPT
    # Unknown level: don't guess.
    return REJECT


def is_blacklisted(school: Optional[str], rules: FilterRules = DEFAULT_RULES) -> bool:
    return _contains_any(school, rules.blacklisted_schools)


def is_nearby(school: Optional[str], rules: FilterRules = DEFAULT_RULES) -> bool:
    return _contains_any(school, rules.nearby_schools)


def classify_job(job: Job, rules: FilterRules = DEFAULT_RULES) -> ClassifierResult:
    """Decide whether a job is worth notifying about.

    The order of the checks below is the business rule; do not reorder.
    """
    school = job.school or ""
    position = job.position or ""

    subject = subject_verdict(position, rules)
    level = school_level_verdict(school, rules)
    blacklisted = is_blacklisted(school, rules)
    duration = job_duration_kind(
        job,
        full_patterns=rules.full_day_patterns,
        half_patterns=rules.half_day_patterns,
    )

    if subject == REJECT:
        return ClassifierResult(False, False, f"Subject rejected: {position}")

    if level == REJECT and not blacklisted:
        return ClassifierResult(False, False, f"School level not accepted: {school}")

    if blacklisted:
        if duration == FULL_DAY:
            return ClassifierResult(True, True, f"Blacklisted school, needs review: {position} at {school}")
        return ClassifierResult(False, False, f"Blacklisted school and not full day: {school}")

    if duration == FULL_DAY:
        if subject == ACCEPT:
            return ClassifierResult(True, False, f"All criteria met: {school} - {position} - {job.duration}")
        return ClassifierResult(True, True, f"Uncertain subject match: {position} at {school}")

    if duration == HALF_DAY:
        if subject == ACCEPT and is_nearby(school, rules):
            return ClassifierResult(True, True, f"Half day at nearby school: {position} at {school}")
        return ClassifierResult(False, False, f"Half day not accepted: {school} - {job.duration}")

    return ClassifierResult(False, False, f"Duration not accepted (need Full Day): {job.duration}")


def load_rules(path: Optional[Path]) -> FilterRules:
    """Load rule overrides from a JSON file.

    Each key names a FilterRules field and replaces that list. A missing file
    means the built-in defaults.
    """
    if path is None or not path.exists():
        return DEFAULT_RULES

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise ConfigError(f"Cannot read filter rules from {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"Filter rules in {path} must be a JSON object")

    known = {f.name for f in fields(FilterRules)}
    overrides = {}
    for k, v in data.items():
        if k not in known:
            raise ConfigError(f"Unknown filter rule list: {k}")
        if not isinstance(v, list) or not all(isinstance(x, str) for x in v):
            raise ConfigError(f"Filter rule {k} must be a list of strings")
        overrides[k] = [x.strip().lower() for x in v if x.strip()]

    return replace(DEFAULT_RULES, **overrides)
