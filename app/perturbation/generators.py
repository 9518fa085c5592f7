from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping

from app.features.goal_weights import normalize_goal
from app.schemas.perturbation import EvidenceItem, PerturbationConfig, ProfileVariant
from app.schemas.profile import StudentProfile

logger = logging.getLogger(__name__)

# Free-text fields a variant may rewrite; everything else is carried over untouched.
FREE_TEXT_FIELDS: tuple[str, ...] = (
    "interests_free_text",
    "goals_free_text",
    "past_activities",
    "past_achievements",
    "challenges",
)

_FIELD_SOURCES: dict[str, str] = {
    "interests_free_text": "interests",
    "goals_free_text": "goals",
    "past_activities": "past_activities",
    "past_achievements": "achievements",
    "challenges": "challenges",
}

EMPTY_ACTIVITIES_TEXT = "No other activities listed."
MAX_INJECTED_SKILLS = 2


@dataclass(frozen=True)
class InjectionTemplate:
    kind: str  # "experience" or "achievement"
    text: str
    skills: tuple[str, ...]


@dataclass(frozen=True)
class EvidenceFamily:
    name: str
    field: str
    pattern: re.Pattern[str]
    skills: tuple[str, ...]


@dataclass(frozen=True)
class KeyEvidence:
    family: EvidenceFamily
    item: EvidenceItem
    skills: tuple[str, ...]


INJECTION_TEMPLATES: Mapping[str, tuple[InjectionTemplate, ...]] = MappingProxyType(
    {
        "problem_solving": (
            InjectionTemplate(
                "experience",
                "Debugged a complex software issue that stumped my team for weeks.",
                ("problem_solving", "technical_skills"),
            ),
            InjectionTemplate(
                "achievement",
                "Won 1st place in a regional problem-solving competition.",
                ("problem_solving",),
            ),
        ),
        "communication": (
            InjectionTemplate(
                "experience",
                "Presented our research findings to a panel of university professors.",
                ("communication",),
            ),
            InjectionTemplate(
                "achievement",
                "Selected as keynote speaker for school assembly of 500+ students.",
                ("communication", "leadership"),
            ),
        ),
        "technical_skills": (
            InjectionTemplate(
                "experience",
                "Built a full-stack web application using React and Node.js.",
                ("technical_skills", "problem_solving"),
            ),
            InjectionTemplate(
                "achievement",
                "Completed Google's Professional IT Support certification.",
                ("technical_skills",),
            ),
        ),
        "creativity": (
            InjectionTemplate(
                "experience",
                "Designed and illustrated a 40-page graphic novel from scratch.",
                ("creativity",),
            ),
            InjectionTemplate(
                "achievement",
                "Art piece selected for display in the city art museum.",
                ("creativity",),
            ),
        ),
        "leadership": (
            InjectionTemplate(
                "experience",
                "Led a team of 15 volunteers for a community service project.",
                ("leadership", "communication"),
            ),
            InjectionTemplate(
                "achievement",
                "Elected student body president with 65% of votes.",
                ("leadership",),
            ),
        ),
        "self_management": (
            InjectionTemplate(
                "experience",
                "Maintained a 4.0 GPA while working 20 hours per week.",
                ("self_management",),
            ),
            InjectionTemplate(
                "achievement",
                "Completed a year-long independent research project ahead of schedule.",
                ("self_management", "problem_solving"),
            ),
        ),
    }
)

# Keys are normalized goal ids; a selected goal matches when its normalized form contains the key.
GOAL_SKILL_MAP: Mapping[str, tuple[str, ...]] = MappingProxyType(
    {
        "coding": ("technical_skills", "problem_solving"),
        "stem": ("technical_skills", "problem_solving"),
        "leadership": ("leadership", "communication"),
        "publicspeaking": ("communication",),
        "creativity": ("creativity",),
        "entrepreneurship": ("leadership", "problem_solving"),
        "college": ("self_management", "problem_solving"),
        "writing": ("communication", "creativity"),
        "career": ("self_management", "leadership"),
        "networking": ("communication", "leadership"),
    }
)

INTEREST_SKILL_MAP: Mapping[str, tuple[str, ...]] = MappingProxyType(
    {
        "technical": ("technical_skills",),
        "creative": ("creativity",),
        "social": ("communication",),
        "business": ("leadership",),
    }
)

DEFAULT_INJECTION_SKILLS: tuple[str, ...] = ("problem_solving", "communication")

# Keywords only anchor at a word start so "led" does not fire inside "failed".
EVIDENCE_FAMILIES: tuple[EvidenceFamily, ...] = (
    EvidenceFamily(
        "leadership",
        "past_activities",
        re.compile(r"\b(?:led|captain|president|organized|founded)", re.IGNORECASE),
        ("leadership",),
    ),
    EvidenceFamily(
        "technical",
        "past_activities",
        re.compile(r"\b(?:built|coded|programmed|developed|app|software|robot)", re.IGNORECASE),
        ("technical_skills", "problem_solving"),
    ),
    EvidenceFamily(
        "communication",
        "past_activities",
        re.compile(r"\b(?:presented|spoke|explained|taught|mentored)", re.IGNORECASE),
        ("communication",),
    ),
    EvidenceFamily(
        "achievement",
        "past_achievements",
        re.compile(r"\b(?:won|award|place|recognition|certified)", re.IGNORECASE),
        (),
    ),
)

_ACHIEVEMENT_SKILL_PATTERNS: tuple[tuple[re.Pattern[str], tuple[str, ...]], ...] = (
    (re.compile(r"hackathon|coding|tech|robot", re.IGNORECASE), ("technical_skills", "problem_solving")),
    (re.compile(r"debate|speaker|speaking", re.IGNORECASE), ("communication",)),
    (re.compile(r"leadership|president|captain", re.IGNORECASE), ("leadership",)),
    (re.compile(r"\bart|creative|design", re.IGNORECASE), ("creativity",)),
)

# Applied in order; each pattern always takes its first replacement.
REPHRASING_PATTERNS: tuple[tuple[re.Pattern[str], str], ...] = tuple(
    (re.compile(pattern, re.IGNORECASE), replacement)
    for pattern, replacement in (
        (r"\bI built\b", "I created"),
        (r"\bI led\b", "I headed"),
        (r"\bI organized\b", "I coordinated"),
        (r"\bI won\b", "I achieved"),
        (r"\bhelped\b", "assisted"),
        (r"\bcreated\b", "developed"),
        (r"\bparticipated in\b", "took part in"),
        (r"\bworked on\b", "contributed to"),
        (r"\bmanaged\b", "oversaw"),
        (r"\btaught\b", "instructed"),
        (r"\bcompetition\b", "contest"),
        (r"\bproject\b", "initiative"),
        (r"\bteam\b", "group"),
        (r"\bschool\b", "academic institution"),
    )
)

_SENTENCE_RE = re.compile(r"[^.!?]+[.!?]*")
_WHITESPACE_RE = re.compile(r"\s+")


def variant_id(profile_id: str, variant_type: str) -> str:
    return f"{profile_id}-{variant_type}"


def split_sentences(text: str) -> list[str]:
    return [sentence.strip() for sentence in _SENTENCE_RE.findall(text or "") if sentence.strip()]


def _join(*parts: str) -> str:
    return _WHITESPACE_RE.sub(" ", " ".join(part for part in parts if part)).strip()


def _achievement_skills(sentence: str) -> tuple[str, ...]:
    skills: list[str] = []
    for pattern, related in _ACHIEVEMENT_SKILL_PATTERNS:
        if pattern.search(sentence):
            skills.extend(skill for skill in related if skill not in skills)
    return tuple(skills) or ("problem_solving",)


def identify_key_evidence(profile: StudentProfile) -> list[KeyEvidence]:
    """Find the first sentence of each evidence family, in family order."""
    found: list[KeyEvidence] = []
    for family in EVIDENCE_FAMILIES:
        text = getattr(profile, family.field)
        sentence = next((s for s in split_sentences(text) if family.pattern.search(s)), None)
        if sentence is None:
            continue
        skills = family.skills or _achievement_skills(sentence)
        item = EvidenceItem(text=sentence, source=_FIELD_SOURCES[family.field], skill=skills[0])
        found.append(KeyEvidence(family=family, item=item, skills=skills))
    return found


def relevant_injection_skills(profile: StudentProfile) -> list[str]:
    skills: list[str] = []
    for goal in profile.goals_selected:
        normalized = normalize_goal(goal).replace("_", "")
        for key, related in GOAL_SKILL_MAP.items():
            if key in normalized:
                skills.extend(skill for skill in related if skill not in skills)
    for category in profile.interests_by_category.selected():
        skills.extend(skill for skill in INTEREST_SKILL_MAP.get(category, ()) if skill not in skills)
    return skills or list(DEFAULT_INJECTION_SKILLS)


def generate_original_variant(profile_id: str, profile: StudentProfile) -> ProfileVariant:
    return ProfileVariant(
        id=variant_id(profile_id, "original"),
        source_profile_id=profile_id,
        variant_type="original",
        profile_data=profile,
        description="Unmodified baseline profile",
    )


def generate_injection_variant(profile_id: str, profile: StudentProfile) -> ProfileVariant:
    """Append evidence for up to two goal-relevant skills that the profile does not already state."""
    existing = profile.combined_text().lower()
    activities = profile.past_activities
    achievements = profile.past_achievements
    injected: list[EvidenceItem] = []
    targets: list[str] = []

    for skill in relevant_injection_skills(profile)[:MAX_INJECTED_SKILLS]:
        template = next(
            (item for item in INJECTION_TEMPLATES[skill] if item.text.lower().rstrip(".") not in existing),
            None,
        )
        if template is None:
            continue
        if template.kind == "experience":
            activities = _join(activities, template.text)
            source = "past_activities"
        else:
            achievements = _join(achievements, template.text)
            source = "achievements"
        injected.append(EvidenceItem(text=template.text, source=source, skill=skill))
        targets.extend(related for related in template.skills if related not in targets)

    modified = profile.model_copy(update={"past_activities": activities, "past_achievements": achievements})
    return ProfileVariant(
        id=variant_id(profile_id, "injection"),
        source_profile_id=profile_id,
        variant_type="injection",
        profile_data=modified,
        description=(
            f"Injected {len(injected)} evidence item(s) for {', '.join(item.skill for item in injected)}"
            if injected
            else "No new evidence could be injected"
        ),
        modifications=[f"{item.source}: + {item.text}" for item in injected],
        target_skills=targets,
        injected_evidence=injected,
    )


def _strip_matching(text: str, pattern: re.Pattern[str]) -> tuple[str, list[str]]:
    kept: list[str] = []
    removed: list[str] = []
    for sentence in split_sentences(text):
        (removed if pattern.search(sentence) else kept).append(sentence)
    return " ".join(kept), removed


def generate_removal_variant(profile_id: str, profile: StudentProfile) -> ProfileVariant:
    """Strip every sentence of the first detected evidence family from all free-text fields."""
    key_evidence = identify_key_evidence(profile)
    updates: dict[str, str] = {}
    removed: list[EvidenceItem] = []

    if key_evidence:
        family = key_evidence[0].family
        targets = list(key_evidence[0].skills)
        for field in FREE_TEXT_FIELDS:
            text, stripped = _strip_matching(getattr(profile, field), family.pattern)
            if not stripped:
                continue
            updates[field] = text
            removed.extend(
                EvidenceItem(text=sentence, source=_FIELD_SOURCES[field], skill=targets[0]) for sentence in stripped
            )
        description = f"Removed {len(removed)} {family.name} sentence(s)"
    else:
        targets = []
        sentences = split_sentences(profile.past_activities)
        if len(sentences) > 1:
            dropped = sentences.pop()
            updates["past_activities"] = " ".join(sentences)
            removed.append(EvidenceItem(text=dropped, source="past_activities", skill="problem_solving"))
            targets = ["problem_solving"]
            description = "No key evidence detected; removed the last activity sentence"
        else:
            description = "No key evidence identified for removal"

    if "past_activities" in updates and not updates["past_activities"].strip():
        updates["past_activities"] = EMPTY_ACTIVITIES_TEXT

    return ProfileVariant(
        id=variant_id(profile_id, "removal"),
        source_profile_id=profile_id,
        variant_type="removal",
        profile_data=profile.model_copy(update=updates),
        description=description,
        modifications=[f"{item.source}: - {item.text}" for item in removed],
        target_skills=targets,
        removed_evidence=removed,
    )


def rephrase_text(text: str) -> str:
    for pattern, replacement in REPHRASING_PATTERNS:
        text = pattern.sub(replacement, text)
    return text


def generate_rephrasing_variant(profile_id: str, profile: StudentProfile) -> ProfileVariant:
    updates: dict[str, str] = {}
    for field in FREE_TEXT_FIELDS:
        original = getattr(profile, field)
        rephrased = rephrase_text(original)
        if rephrased != original:
            updates[field] = rephrased
    return ProfileVariant(
        id=variant_id(profile_id, "rephrasing"),
        source_profile_id=profile_id,
        variant_type="rephrasing",
        profile_data=profile.model_copy(update=updates),
        description=(
            f"Rephrased {len(updates)} free-text field(s) without changing meaning"
            if updates
            else "No rephrasable wording found"
        ),
        modifications=[f"{field}: rephrased" for field in updates],
    )


def generate_variants(
    profile_id: str,
    profile: StudentProfile,
    config: PerturbationConfig | None = None,
) -> list[ProfileVariant]:
    """Baseline first, then one variant per enabled perturbation type."""
    config = config or PerturbationConfig()
    variants = [generate_original_variant(profile_id, profile)]
    if config.run_injection:
        variants.append(generate_injection_variant(profile_id, profile))
    if config.run_removal:
        variants.append(generate_removal_variant(profile_id, profile))
    if config.run_rephrasing:
        variants.append(generate_rephrasing_variant(profile_id, profile))
    logger.info(
        "perturbation_variants_generated profile=%s types=%s",
        profile_id,
        [variant.variant_type for variant in variants],
    )
    return variants
