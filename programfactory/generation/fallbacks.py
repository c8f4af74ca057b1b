"""Deterministic placeholder content used when the model service fails.

Everything here is derived from the brief and the program matrix only, so
the pipeline can run end to end without a model.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from ..contracts import (
    Approach,
    ApproachOptions,
    ArcPhase,
    Article,
    Chapter,
    Framework,
    FrameworkOptions,
    LearningArc,
    MatrixSession,
    ProgramBrief,
    ProgramMatrix,
    Quiz,
    QuizQuestion,
    ResearchResults,
    SampleContent,
)


def _first(items, default: str) -> str:
    return items[0] if items else default


def fallback_frameworks(brief: ProgramBrief) -> FrameworkOptions:
    return FrameworkOptions(
        frameworks=[
            Framework(
                id="competency-based",
                name="Competency-Based Framework",
                description=(
                    "Structures learning around specific competencies employees must "
                    "demonstrate, with measurable outcomes and performance criteria."
                ),
                rationale="Based on competency-based education theory.",
            ),
            Framework(
                id="problem-centered",
                name="Problem-Centered Framework",
                description=(
                    f"Organizes learning around real business problems {brief.client_name} "
                    "faces. Concepts are introduced as tools to solve them."
                ),
                rationale="Based on problem-based learning and adult learning principles.",
            ),
            Framework(
                id="progressive-scaffolding",
                name="Progressive Scaffolding Framework",
                description=(
                    "Builds knowledge from fundamentals to advanced application, removing "
                    "support as learners gain confidence."
                ),
                rationale="Based on the zone of proximal development and cognitive load theory.",
            ),
        ],
        recommended="problem-centered",
        reasoning=(
            f"Problem-centered is recommended because the brief emphasizes practical "
            f"challenges in {brief.industry} and engages {brief.audience} with relevant scenarios."
        ),
    )


def fallback_research(brief: ProgramBrief) -> ResearchResults:
    return ResearchResults(
        summary=f"General best practices for {brief.industry} corporate training.",
        key_findings=[
            "Increased focus on microlearning and bite-sized content",
            "Integration of practical exercises and real-world scenarios",
            "Emphasis on measurable outcomes and skill application",
        ],
        best_practices=[
            "Tie every session to an on-the-job task",
            "Space practice over several weeks",
            "Check understanding with short scenario questions",
        ],
        sources=[{"title": "Corporate learning standards", "type": "public-framework"}],
    )


def fallback_approaches(brief: ProgramBrief) -> ApproachOptions:
    return ApproachOptions(
        approaches=[
            Approach(
                id="scenario-based",
                name="Scenario-Based Learning",
                description=(
                    "Learners work through realistic workplace scenarios. Each concept is "
                    "introduced through situations they will meet on the job."
                ),
                methodology="Present scenarios, let learners decide, give feedback, reflect.",
                best_for=["Experienced professionals", "Hands-on learners"],
            ),
            Approach(
                id="progressive-mastery",
                name="Progressive Mastery",
                description=(
                    "Content is sequenced from simple to complex. Learners master each "
                    "level before advancing."
                ),
                methodology="Layer concepts with checkpoints before moving on.",
                best_for=["New learners in the field", "Systematic thinkers"],
            ),
            Approach(
                id="problem-solving",
                name="Problem-Solving Framework",
                description=(
                    f"Learning is organized around key challenges in {brief.industry}. "
                    "Concepts are taught as solutions."
                ),
                methodology="Present the problem first, then teach concepts as tools.",
                best_for=["Analytical thinkers", "Self-directed learners"],
            ),
        ]
    )


def fallback_arc(brief: ProgramBrief, approach: str) -> LearningArc:
    return LearningArc(
        title=f"Mastering {brief.industry} Excellence",
        narrative=(
            "This learning journey takes you from foundational concepts to confident "
            f"application, building expertise step by step through a {approach.lower()} "
            "methodology."
        ),
        progression=[
            ArcPhase(phase="Foundation", focus="Build essential knowledge of core concepts"),
            ArcPhase(phase="Comprehension", focus="Deepen understanding through examples"),
            ArcPhase(phase="Application", focus="Apply knowledge to real-world situations"),
            ArcPhase(phase="Integration", focus="Connect concepts and see the bigger picture"),
            ArcPhase(phase="Mastery", focus="Practice independently with confidence"),
        ],
    )


def fallback_matrix(brief: ProgramBrief) -> ProgramMatrix:
    sessions = [
        MatrixSession(
            session_number=1,
            title="Foundations and Overview",
            objectives=["Understand core concepts and terminology", "Identify key areas of focus"],
            topics=["Introduction to key concepts", "Industry standards", "Common challenges"],
            key_takeaways=["Core terminology and concepts", "Why these practices matter"],
        ),
        MatrixSession(
            session_number=2,
            title="Essential Skills and Techniques",
            objectives=["Apply fundamental techniques", "Follow established procedures"],
            topics=["Step-by-step procedures", "Common tools and resources", "Practical examples"],
            key_takeaways=["Key techniques and methods", "How to apply skills in practice"],
        ),
        MatrixSession(
            session_number=3,
            title="Advanced Applications",
            objectives=["Handle complex scenarios", "Make informed decisions"],
            topics=["Case studies", "Problem-solving strategies", "Decision-making frameworks"],
            key_takeaways=["Advanced problem-solving skills", "Confidence with complexity"],
        ),
        MatrixSession(
            session_number=4,
            title="Implementation and Best Practices",
            objectives=["Implement learning in daily work", "Maintain high standards"],
            topics=["Integration into workflow", "Quality assurance", "Continuous improvement"],
            key_takeaways=["How to apply learning immediately", "Ongoing development resources"],
        ),
    ]
    return ProgramMatrix(
        program_title=f"{brief.industry} Training Program",
        target_audience=brief.audience,
        chapters=[
            Chapter(number=1, title="Building the Foundation", sessions=sessions[:2]),
            Chapter(number=2, title="Putting It Into Practice", sessions=sessions[2:]),
        ],
    )


def fallback_article(unit: MatrixSession) -> str:
    objectives = "\n".join(f"{i}. {o}" for i, o in enumerate(unit.objectives, start=1))
    topics = "\n\n".join(
        f"{i}. {topic}\n\nUnderstanding {topic} is essential for mastery in this area. "
        f"Consider how {topic} applies to your daily work."
        for i, topic in enumerate(unit.topics, start=1)
    )
    takeaways = "\n".join(f"- {t}" for t in unit.key_takeaways)
    return (
        f"# Session {unit.session_number}: {unit.title}\n\n"
        f"## Context\nWelcome to {unit.title}. In this session you will explore the key "
        "concepts and practical applications of this topic.\n\n"
        f"## Learning Objectives\n{objectives}\n\n"
        f"## Main Content\n{topics}\n\n"
        "## Next Steps\nThe next session builds on these foundations. Review the material "
        "and think about where you can apply it this week.\n\n"
        f"## Key Takeaways\n{takeaways}\n"
    )


def fallback_script(unit: MatrixSession) -> str:
    topic = _first(unit.topics, unit.title)
    return (
        f"What would change if you mastered {unit.title.lower()} this week? [PAUSE] "
        f"Today we look at {topic} and why it matters in your role. [PAUSE] "
        f"Pick one situation from your own work and apply {topic} to it before the next session."
    )


def fallback_quiz(unit: MatrixSession) -> Dict[str, Any]:
    quiz = Quiz(
        questions=[
            QuizQuestion(
                question=f"What is the primary focus of {unit.title}?",
                options=[
                    _first(unit.objectives, "Understanding key concepts"),
                    "Memorizing technical specifications",
                    "Completing certification requirements",
                    "Managing team dynamics",
                ],
                correct_index=0,
                explanation="This is the session's first learning objective.",
            ),
            QuizQuestion(
                question="Which of the following is a key topic covered in this session?",
                options=[
                    _first(unit.topics, "Core principles"),
                    "Unrelated advanced topics",
                    "Administrative procedures",
                    "Budget considerations",
                ],
                correct_index=0,
                explanation="It is one of the main topics explored in this session.",
            ),
            QuizQuestion(
                question="What is one of the key takeaways from this session?",
                options=[
                    _first(unit.key_takeaways, "Understanding fundamental concepts"),
                    "Completing all paperwork",
                    "Attending all meetings",
                    "Memorizing all details",
                ],
                correct_index=0,
                explanation="It is a primary takeaway you should be able to apply.",
            ),
        ]
    )
    return quiz.model_dump(mode="json")


def fallback_exercise(unit: MatrixSession, brief: Optional[ProgramBrief] = None) -> Dict[str, Any]:
    persona = brief.personas[0].role if brief and brief.personas else "a colleague"
    return {
        "exercise": {
            "roleplay": f"conversation with {persona}",
            "objective": f"apply {unit.title}",
            "steps": [
                {"mentor": f"open with one probing question about {_first(unit.topics, unit.title)}"},
                {"learner": "respond"},
                {"mentor": "raise an objection"},
                {"learner": "handle the objection"},
                {"mentor": "wrap up and ask for a next step"},
            ],
            "success_criteria": [
                "asked two probing questions",
                "linked the answer to the session objectives",
                "secured a clear next step",
            ],
        }
    }


def fallback_sample(unit: MatrixSession) -> SampleContent:
    return SampleContent(
        session_number=unit.session_number,
        article=Article(title=unit.title, content=fallback_article(unit), reading_time="8 minutes"),
        quiz=Quiz.model_validate(fallback_quiz(unit)),
    )
