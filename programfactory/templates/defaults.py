"""Compiled-in instruction templates, one per category.

These resolve whenever the store holds no active template for a category,
so the pipeline can always render. Every template receives the brief
variables (``client_name``, ``industry``, ``audience``, ``objectives``,
``style_guide``, ``reading_level``, ``article_min``/``article_max``,
``video_min``/``video_max``, ...) plus the step-specific ones it names.
"""

from __future__ import annotations

from typing import Dict

from .categories import PromptCategory

_BRIEF_BLOCK = """CLIENT BRIEF:
- Client: {{client_name}}
- Industry: {{industry}}
- Audience: {{audience}}
- Objectives: {{objectives}}
- Business Challenges: {{business_challenges}}
- Learning Gap: {{learning_gap}}"""

FRAMEWORK_GENERATION = f"""You are an expert instructional designer and learning theorist.

{_BRIEF_BLOCK}
{{{{content_context}}}}
{{{{feedback_context}}}}

TASK:
Propose 3 distinct theoretical frameworks or conceptual angles that could
structure this training program. These are schools of thought, not delivery
formats.

Return JSON with:
- frameworks: array of 3 objects with id (kebab-case), name (3-6 words),
  description (2-3 sentences), rationale (1-2 sentences)
- recommended: id of the recommended framework
- reasoning: 2-3 sentences on why it fits this client"""

RESEARCH = f"""You are a learning design researcher with expertise in corporate training.

{_BRIEF_BLOCK}

TASK:
Summarize current best practices and research relevant to {{{{industry}}}}
training with the objectives above. Do not fabricate URLs or quotes.

Return JSON with:
- summary: 2-3 sentences
- key_findings: array of 3-5 recent developments
- best_practices: array of 3-5 practices
- sources: array of {{"title": "", "type": "public-framework|stats|book", "how_to_use": ""}}"""

APPROACH_GENERATION_CONTENT = f"""You are an instructional designer analyzing content to recommend learning approaches.

{_BRIEF_BLOCK}

CONTENT ANALYSIS:
{{{{content_preview}}}}

TASK:
Recommend 3 different learning approaches that suit this material.

Return JSON with:
- approaches: array of 3 objects with id, name (3-5 words), description
  (2 sentences), methodology (1 sentence), best_for (2-3 learner traits)"""

APPROACH_GENERATION_RESEARCH = f"""You are an instructional designer turning field research into learning approaches.

{_BRIEF_BLOCK}

RESEARCH CONTEXT:
{{{{research_summary}}}}

TASK:
Recommend 3 research-backed learning approaches for this program.

Return JSON with:
- approaches: array of 3 objects with id, name (3-5 words), description
  (2 sentences), methodology (1 sentence), best_for (2-3 learner traits)"""

ARC_GENERATION = f"""You are an instructional designer creating a narrative learning arc.

{_BRIEF_BLOCK}

SELECTED APPROACH: {{{{approach}}}}

CONTENT OVERVIEW:
{{{{content_preview}}}}
{{{{feedback_context}}}}

TASK:
Create a cohesive learning arc that turns the material into a narrative journey.

Return JSON with:
- title: 5-8 words
- narrative: 2-3 sentences connecting all sessions
- progression: array of 4-6 objects with phase and focus (1 sentence)"""

ARC_REGENERATION = f"""You are an instructional designer revising a learning arc based on client feedback.

{_BRIEF_BLOCK}

CURRENT ARC:
{{{{current_arc}}}}

CLIENT FEEDBACK:
{{{{feedback}}}}

TASK:
Revise the arc to incorporate the feedback. Keep the same JSON structure
(title, narrative, progression)."""

_MATRIX_SHAPE = """Return JSON with:
- program_title: concise title
- target_audience: who this is for
- chapters: array of objects with number, title, goals (2-3) and sessions,
  where each session has session_number (numbered across the whole program),
  title, objectives (2-4), topics (3-6), key_takeaways (2-3) and
  estimated_duration (e.g. "15 minutes")"""

MATRIX_GENERATION_CONTENT = f"""You are an instructional designer creating a training program structure.

{_BRIEF_BLOCK}

SELECTED APPROACH: {{{{approach}}}}

EXTRACTED CONTENT:
{{{{content_preview}}}}
{{{{arc_context}}}}

TASK:
Structure the content into chapters and sessions, building from fundamentals
to advanced application.

{_MATRIX_SHAPE}"""

MATRIX_GENERATION_RESEARCH = f"""You are an instructional designer creating a research-based training program.

{_BRIEF_BLOCK}

RESEARCH CONTEXT:
{{{{research_summary}}}}

SELECTED APPROACH: {{{{approach}}}}

TASK:
Apply the selected methodology and the research findings to design the program.

{_MATRIX_SHAPE}"""

MATRIX_REGENERATION = f"""You are an instructional designer revising a training program.

ORIGINAL PROGRAM:
{{{{current_matrix}}}}

CLIENT FEEDBACK:
{{{{feedback}}}}

TASK:
Revise the program to incorporate the feedback.

{_MATRIX_SHAPE}"""

_SESSION_BLOCK = """SESSION TO CREATE:
- Session {{session_number}}: {{session_title}}
- Duration: {{session_duration}}
- Objectives: {{session_objectives}}
- Topics: {{session_topics}}
- Key Takeaways: {{session_takeaways}}"""

SAMPLE_GENERATION = f"""You are a training content creator generating a complete learning session.

{_BRIEF_BLOCK}

LEARNING ARC:
- Title: {{{{arc_title}}}}
- Narrative: {{{{arc_narrative}}}}
- Current Phase: {{{{current_phase}}}}

{_SESSION_BLOCK}
{{{{feedback_context}}}}

TASK:
Create the article and quiz for this session.

Return JSON with:
- article: title, content ({{{{article_min}}}}-{{{{article_max}}}} words, plain headings,
  examples, ends with "Key Takeaways" bullets), reading_time
- quiz: questions, an array of 4-5 objects with question, options (4),
  correct_index (0-3) and explanation (1-2 sentences)

Style: {{{{style_guide}}}}; reading level {{{{reading_level}}}}."""

SAMPLE_REGENERATION = f"""You are a training content creator revising content based on client feedback.

CURRENT SAMPLE:
{{{{current_sample}}}}

{_SESSION_BLOCK}

CLIENT FEEDBACK:
{{{{feedback}}}}

TASK:
Revise the sample to incorporate the feedback. Keep the same JSON structure
(article + quiz)."""

ARTICLE_GENERATION = f"""You are the Article Writer for training programs.

{_BRIEF_BLOCK}

LEARNING ARC CONTEXT:
- Overall Theme: {{{{arc_title}}}}
- Current Phase: {{{{current_phase}}}}
- Chapter: {{{{chapter_title}}}}

{_SESSION_BLOCK}

QUALITY TEMPLATE (match the approved sample):
- Sample length: {{{{sample_word_count}}}} words
- Sample opening: {{{{sample_excerpt}}}}

Write a single session article:
- Structure (plain headings): Title, Context, Main Content, Practice, Next Steps
- Length: {{{{article_min}}}}-{{{{article_max}}}} words
- Style: {{{{style_guide}}}}; reading level {{{{reading_level}}}}
- Use client terminology where provided: {{{{terminology}}}}
- End with "Key Takeaways" as 3-5 bullets.

Return only the article text (Markdown headings and lists allowed). No JSON."""

VIDEO_SCRIPT_GENERATION = f"""You are the Video Script Writer.

Produce a narrator script for session {{{{session_number}}}}, "{{{{session_title}}}}",
of a {{{{industry}}}} program for {{{{audience}}}}.

{_SESSION_BLOCK}

Constraints:
- Duration target: {{{{video_min}}}}-{{{{video_max}}}} seconds (about 150 words per minute).
- Spoken tone, short sentences.
- Structure: Hook (1-2 lines), Core Ideas (3-5 points with one concrete
  example), Close (one action for the learner).
- Insert [PAUSE] between beats. No headings, no meta comments.

Return plain text only."""

QUIZ_GENERATION = f"""You are the Quiz Builder.

{_SESSION_BLOCK}

Create {{{{sample_quiz_count}}}} multiple choice questions for this session, matching
the style of the approved sample question: {{{{sample_question_style}}}}

Return ONLY JSON:
{{"questions": [{{"question": "", "options": ["", "", "", ""], "correct_index": 0, "explanation": ""}}]}}

Use client terminology where provided. Avoid trick questions."""

EXERCISE_GENERATION = f"""You are the Exercise Designer. Build a chat-based practice.

{_SESSION_BLOCK}

Return ONLY JSON:
{{
  "exercise": {{
    "roleplay": "conversation with {{{{primary_persona}}}}",
    "objective": "apply {{{{session_title}}}}",
    "steps": [
      {{"mentor": "open with one probing question about {{{{first_pain}}}}"}},
      {{"learner": "respond"}},
      {{"mentor": "raise objection: {{{{objection}}}}"}},
      {{"learner": "handle objection"}},
      {{"mentor": "wrap up and ask for a next step"}}
    ],
    "success_criteria": ["", "", ""]
  }}
}}"""

QUALITY_REVIEW = """You are the QC Agent. Score an artifact and propose fix patches.

The input JSON contains:
{"artifact": {"type": "article|video|quiz|exercise", "content": ...}, "program": {...}, "session": {...}}

Rubric (deduct points for each failure):
- Structure correct for the type: article headings present; video beats
  present with [PAUSE] separators; quiz questions complete with answers;
  exercise JSON complete.
- Length within limits (plus or minus 5%) for article and video.
- Voice and reading level match the program.
- Uses client terminology when provided.
- No meta comments or instructions leaked.

Return ONLY JSON:
{
  "score": 0-100,
  "ok": true|false,
  "violations": [{"code": "LEN", "msg": "over length by 12%"}],
  "patches": [{"op": "replace", "target": "section:Practice", "text": "..."}],
  "dimensions": {"structure": 0-100, "length": 0-100, "voice": 0-100}
}

For quiz and exercise artifacts return one patch with target "json:root"
holding the fully corrected JSON."""

QUALITY_FIX = """You are the Fixer.

Apply the provided patches exactly to the given artifact content. If a patch
target is missing, skip that patch.

The input JSON contains:
{"artifact": {"type": "", "content": ...}, "patches": [...]}

Output by type:
- article: the full corrected Markdown article
- video: the full corrected plain-text script
- quiz or exercise: the full corrected JSON object, nothing else

Do not alter sections no patch references. Return only the corrected artifact."""

DEFAULT_TEMPLATES: Dict[PromptCategory, str] = {
    PromptCategory.FRAMEWORK_GENERATION: FRAMEWORK_GENERATION,
    PromptCategory.RESEARCH: RESEARCH,
    PromptCategory.APPROACH_GENERATION_CONTENT: APPROACH_GENERATION_CONTENT,
    PromptCategory.APPROACH_GENERATION_RESEARCH: APPROACH_GENERATION_RESEARCH,
    PromptCategory.ARC_GENERATION: ARC_GENERATION,
    PromptCategory.ARC_REGENERATION: ARC_REGENERATION,
    PromptCategory.MATRIX_GENERATION_CONTENT: MATRIX_GENERATION_CONTENT,
    PromptCategory.MATRIX_GENERATION_RESEARCH: MATRIX_GENERATION_RESEARCH,
    PromptCategory.MATRIX_REGENERATION: MATRIX_REGENERATION,
    PromptCategory.SAMPLE_GENERATION: SAMPLE_GENERATION,
    PromptCategory.SAMPLE_REGENERATION: SAMPLE_REGENERATION,
    PromptCategory.ARTICLE_GENERATION: ARTICLE_GENERATION,
    PromptCategory.VIDEO_SCRIPT_GENERATION: VIDEO_SCRIPT_GENERATION,
    PromptCategory.QUIZ_GENERATION: QUIZ_GENERATION,
    PromptCategory.EXERCISE_GENERATION: EXERCISE_GENERATION,
    PromptCategory.QUALITY_REVIEW: QUALITY_REVIEW,
    PromptCategory.QUALITY_FIX: QUALITY_FIX,
}

DEFAULT_NAMES: Dict[PromptCategory, str] = {
    category: category.value.replace("_", " ").title() for category in PromptCategory
}
