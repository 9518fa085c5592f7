"""Canned extractor responses shared by the pipeline and perturbation tests."""

import json
from typing import Callable

from app.schemas.profile import SKILL_NAMES, StudentProfile
from app.services.extractor import Extractor
from app.services.pipeline import PipelineOrchestrator
from app.services.prompts import (
    GAP_SYSTEM_PROMPT,
    INTAKE_SYSTEM_PROMPT,
    PLAN_SYSTEM_PROMPT,
    RECOMMENDATION_SYSTEM_PROMPT,
)
from app.services.stages import SkillBridgeStages

STAGE_BY_PROMPT = {
    INTAKE_SYSTEM_PROMPT: "intake",
    GAP_SYSTEM_PROMPT: "skill_gap",
    RECOMMENDATION_SYSTEM_PROMPT: "recommendations",
    PLAN_SYSTEM_PROMPT: "action_plan",
}


class FakeAIClient:
    """Returns a canned string per stage; a callable receives the user prompt, an exception is raised."""

    def __init__(self, responses: dict):
        self.responses = responses
        self.calls: list[str] = []

    async def complete(self, messages, *, model=None, temperature=None, max_tokens=None):
        stage = STAGE_BY_PROMPT[messages[0].content]
        self.calls.append(stage)
        if stage not in self.responses:
            raise RuntimeError(f"no canned response for {stage}")
        response = self.responses[stage]
        if isinstance(response, Exception):
            raise response
        if callable(response):
            return response(messages[1].content)
        return response


def make_orchestrator(client: FakeAIClient, **kwargs) -> PipelineOrchestrator:
    kwargs.setdefault("stage_timeout_s", 5)
    return PipelineOrchestrator(SkillBridgeStages(Extractor(client)), **kwargs)


def make_profile(**overrides) -> StudentProfile:
    data = {
        "grade": 10,
        "interests_free_text": "I like robotics and building things.",
        "goals_selected": [],
        "goals_free_text": "",
        "time_availability_hours_per_week": 6,
        "learning_preferences": ["hands-on"],
        "past_activities": "I debugged our robot's code and figured out why it kept failing.",
        "past_achievements": "",
        "challenges": "",
    }
    data.update(overrides)
    return StudentProfile(**data)


def signal(phrases=(), sources=("past_activities",), confidence=0.7, reasoning="Clear evidence in the text."):
    return {
        "evidence_found": True,
        "evidence_phrases": list(phrases),
        "evidence_sources": list(sources),
        "confidence": confidence,
        "reasoning": reasoning,
    }


def intake_json(**signals) -> str:
    payload = {}
    for skill in SKILL_NAMES:
        payload[skill] = signals.get(
            skill,
            {
                "evidence_found": False,
                "evidence_phrases": [],
                "evidence_sources": [],
                "confidence": 0.1,
                "reasoning": "No evidence found.",
            },
        )
    return json.dumps(payload)


def gap_json(*skills: str, expected_level_after: float = 95) -> str:
    """Gap document whose expected levels overshoot so the cap has something to clamp."""
    gaps = [
        {
            "skill": skill,
            "current_level": 10,
            "goal_level": 90,
            "gap": 80,
            "expected_level_after": expected_level_after,
            "timeline": "4 weeks",
            "why_it_matters": f"{skill} supports the student's goals.",
            "actionable_steps": [],
            "reasoning": f"Working on {skill} closes the gap.",
        }
        for skill in skills
    ]
    return json.dumps(
        {
            "skill_gaps": gaps,
            "overall_summary": "Focus on the largest gaps first.",
            "priority_skills": list(skills),
            "total_weekly_time_recommended": "6 hours",
        }
    )


def recommendation(title: str, provider: str, skills: dict, reasoning: str = "Builds on existing projects.") -> dict:
    return {
        "title": title,
        "platform_or_provider": provider,
        "match_score": 88,
        "skill_alignment": [{"skill": skill, "expected_improvement": gain} for skill, gain in skills.items()],
        "duration_weeks": 6,
        "level": "Beginner",
        "reasoning": reasoning,
    }


def recommendations_json(courses=(), projects=(), competitions=()) -> str:
    return json.dumps(
        {
            "courses": list(courses),
            "projects": list(projects),
            "competitions": list(competitions),
            "summary": "A mix of courses and projects.",
        }
    )


def task(task_id: str, skill: str, gain: float, hours: float = 1.0) -> dict:
    return {
        "task_id": task_id,
        "title": f"Practice {skill}",
        "description": "Short focused session.",
        "related_skill": skill,
        "skill_gap_addressed": 40,
        "expected_skill_gain": gain,
        "estimated_time_hours": hours,
        "difficulty": "medium",
        "evidence_source": f"{skill} gap analysis",
        "reasoning": "Targets the largest remaining gap.",
    }


def plan_json(weeks_tasks: list[list[dict]]) -> str:
    return json.dumps(
        {
            "overview": {
                "primary_focus_skill": "problem_solving",
                "total_tasks": 0,
                "estimated_total_hours": 0,
                "reasoning_summary": "Four weeks of steady practice.",
            },
            "weeks": [
                {"week_number": index + 1, "theme": f"Week {index + 1}", "tasks": tasks}
                for index, tasks in enumerate(weeks_tasks)
            ],
        }
    )


def full_responses(intake: str | Callable[[str], str]) -> dict:
    """A complete, valid response set for all four stages."""
    return {
        "intake": intake,
        "skill_gap": gap_json("problem_solving", "technical_skills"),
        "recommendations": recommendations_json(
            courses=[recommendation("Intro to Python", "Coursera", {"technical_skills": 10})],
            projects=[recommendation("Build a Line-Following Robot", "Self-directed", {"problem_solving": 12})],
        ),
        "action_plan": plan_json(
            [
                [task("w1-1", "problem_solving", 10, 2), task("w1-2", "technical_skills", 5, 1)],
                [task("w2-1", "problem_solving", 10, 2)],
                [task("w3-1", "problem_solving", 10, 2)],
                [task("w4-1", "technical_skills", 5, 1)],
            ]
        ),
    }


def attributed(**signals):
    """Attributed snapshot straight from canned intake signals, with no inference text."""
    from app.features.responsible_output import apply_inferred_evidence_rules
    from app.schemas.signals import SkillSnapshot

    return apply_inferred_evidence_rules(SkillSnapshot.model_validate_json(intake_json(**signals)), "")
