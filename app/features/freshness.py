from __future__ import annotations

from types import MappingProxyType
from typing import Iterable, Mapping

from app.features.responsible_output import ValidationOutcome
from app.schemas.recommendations import FreshnessCheck, Recommendation

_DISCONTINUED_PROGRAMS: dict[str, tuple[str, str]] = {
    "Google Code-in": ("2020-01-01", "Google Summer of Code (GSoC) or Google Season of Docs"),
    "GCI": ("2020-01-01", "Google Summer of Code (GSoC) or Google Season of Docs"),
    "Facebook University": ("2022-01-01", "Meta University Engineering Program"),
    "Uber Career Prep": ("2023-06-01", "MLH Fellowship or Major League Hacking programs"),
    "Twitter University": ("2022-11-01", "X Engineering Internship Program"),
    "Yahoo BOSS API": ("2016-01-01", "Bing Search API or Google Custom Search API"),
}

_VERIFIED_ACTIVE_PROGRAMS: dict[str, str] = {
    name: "2025-12-01"
    for name in (
        "Google Summer of Code",
        "MLH Fellowship",
        "Coursera",
        "edX",
        "Khan Academy",
        "freeCodeCamp",
        "Codecademy",
        "MIT OpenCourseWare",
        "Harvard CS50",
        "Udacity",
        "Pluralsight",
        "LinkedIn Learning",
        "Science Olympiad",
        "FIRST Robotics",
        "American Mathematics Competitions",
        "USA Computing Olympiad",
        "Congressional App Challenge",
        "Regeneron Science Talent Search",
        "Intel ISEF",
        "MATHCOUNTS",
        "National History Day",
        "Scholastic Art & Writing Awards",
        "Model UN",
        "Debate",
        "DECA",
        "FBLA",
        "SkillsUSA",
    )
}

DISCONTINUED_PROGRAMS: Mapping[str, tuple[str, str]] = MappingProxyType(_DISCONTINUED_PROGRAMS)
VERIFIED_ACTIVE_PROGRAMS: Mapping[str, str] = MappingProxyType(_VERIFIED_ACTIVE_PROGRAMS)


def check_recommendation_freshness(title: str, provider: str) -> FreshnessCheck:
    """Match a recommendation against the discontinued and verified-active registries."""
    lowered_title = (title or "").lower()
    lowered_provider = (provider or "").lower()

    for program, (discontinued_date, alternative) in DISCONTINUED_PROGRAMS.items():
        needle = program.lower()
        if needle in lowered_title or needle in lowered_provider:
            return FreshnessCheck(
                is_active=False,
                last_verified_date=discontinued_date,
                discontinued_program=program,
                discontinued_date=discontinued_date,
                suggested_alternative=alternative,
            )

    for program, verified_date in VERIFIED_ACTIVE_PROGRAMS.items():
        needle = program.lower()
        if needle in lowered_title or needle in lowered_provider:
            return FreshnessCheck(is_active=True, last_verified_date=verified_date)

    return FreshnessCheck(is_active=True, last_verified_date="unverified")


def annotate_recommendation(recommendation: Recommendation) -> tuple[Recommendation, str | None]:
    """Attach a freshness check. Discontinued programs get a note, never a removal."""
    check = check_recommendation_freshness(recommendation.title, recommendation.platform_or_provider)
    if check.is_active:
        return recommendation.model_copy(update={"freshness": check}), None

    note = (
        f'"{recommendation.title}" is no longer active: {check.discontinued_program} was discontinued '
        f"as of {check.discontinued_date}. Suggested alternative: {check.suggested_alternative}."
    )
    reasoning = recommendation.reasoning
    if note not in reasoning:
        reasoning = f"{reasoning} (Note: {note})".strip()
    return recommendation.model_copy(update={"freshness": check, "reasoning": reasoning}), note


def annotate_recommendations(
    recommendations: Iterable[Recommendation],
) -> tuple[list[Recommendation], list[str]]:
    annotated: list[Recommendation] = []
    notes: list[str] = []
    for recommendation in recommendations:
        updated, note = annotate_recommendation(recommendation)
        annotated.append(updated)
        if note:
            notes.append(note)
    return annotated, notes


def validate_no_outdated_recommendations(recommendations: Iterable[Recommendation]) -> ValidationOutcome:
    outdated = [
        f"{rec.title} ({rec.platform_or_provider})"
        for rec in recommendations
        if not check_recommendation_freshness(rec.title, rec.platform_or_provider).is_active
    ]
    return ValidationOutcome(valid=not outdated, violations=outdated)
