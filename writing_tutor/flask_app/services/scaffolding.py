"""
Scaffolding tracker.

A session's ``low_score_count`` goes up by one every time a section scorer
returns 1 and never goes down. Once it reaches the threshold the student gets
guided questions for whichever criterion just scored low.
"""
from __future__ import annotations

from typing import List

DEFAULT_THRESHOLD = 3
LOW_SCORE = 1

GENERIC_PROMPT = "You're doing great! Take a deep breath and add one more idea about {topic}."

SCAFFOLDING_PROMPTS = {
    'titleSubtitles': [
        "What is the most important thing about {topic}? Can your title say that?",
        "Try a title that starts with 'All About' or 'Amazing'.",
        "Could a subtitle help readers find each part of your writing about {topic}?",
    ],
    'hook': [
        "What is the most surprising fact you know about {topic}?",
        "Can you start with a question like 'Did you know...?' about {topic}?",
        "Imagine you are telling a friend about {topic}. What would you say first?",
    ],
    'body': [
        "What are two facts you know about {topic}?",
        "Why is {topic} important or interesting?",
        "Can you give an example that shows what {topic} is like?",
    ],
    'relevantInfo': [
        "What are two facts you know about {topic}?",
        "Does every sentence in this paragraph talk about {topic}?",
        "Can you add a number, a name, or an example about {topic}?",
    ],
    'transitions': [
        "Can you start a sentence with 'First,' 'Next,' or 'Also'?",
        "Use 'because' to explain why a fact about {topic} matters.",
        "How does this paragraph connect to the one before it?",
    ],
    'accuracy': [
        "Read your sentences out loud. Do they sound right?",
        "Check that each sentence starts with a capital letter and ends with a period.",
        "Are your facts about {topic} true? Where did you learn them?",
    ],
    'vocabulary': [
        "Can you swap a plain word like 'good' or 'big' for a more exciting one?",
        "What special words do experts use when they talk about {topic}?",
        "Try using one new word from your word bank.",
    ],
    'conclusion': [
        "What is the most important thing you want readers to remember about {topic}?",
        "Can you start with 'In conclusion' or 'Now you know'?",
        "End with a question or a fun thought about {topic}.",
    ],
}


def record_score(session, score: int) -> int:
    """Fold one section score into the session's low-score counter."""
    if session.low_score_count is None:
        session.low_score_count = 0
    if score == LOW_SCORE:
        session.low_score_count += 1
    return session.low_score_count


def needs_scaffolding(low_score_count: int, threshold: int = DEFAULT_THRESHOLD) -> bool:
    return (low_score_count or 0) >= threshold


def prompts_for(criterion: str, topic: str | None) -> List[str]:
    """Remedial questions for a criterion, interpolated with the topic."""
    topic_text = (topic or '').strip() or 'your topic'
    templates = SCAFFOLDING_PROMPTS.get(criterion)
    if not templates:
        return [GENERIC_PROMPT.format(topic=topic_text)]
    return [template.format(topic=topic_text) for template in templates]
