"""
Rule-Based Entity Extraction

Derives typed, confidence-scored entities from message text using pattern
matching. Extraction is pure and deterministic.

Rules (applied independently, in this order):
1. Person: capitalized names in introductions ("name is", "I'm", "call me")
2. Topic: phrases after "love", "like", "enjoy", "interested in",
   "passionate about" up to the end of the sentence
3. Technology: fixed technology vocabulary, normalized to lowercase
4. Question: interrogative messages containing "?"
"""

import re

import structlog

from threadgraph.models.memory import EntityType, ExtractedEntity

logger = structlog.get_logger(__name__)

MIN_CONTENT_LENGTH = 3

PERSON_CONFIDENCE = 0.9
TOPIC_CONFIDENCE = 0.8
TECHNOLOGY_CONFIDENCE = 0.9
QUESTION_CONFIDENCE = 0.6

QUESTION_PREVIEW_LENGTH = 50

# Introduction frame is case-insensitive, the name itself must be capitalized
PERSON_PATTERN = re.compile(
    r"(?i:\bname\s+is|\bi'm|\bcall\s+me)\s+([A-Z][\w'-]*(?: +[A-Z][\w'-]*)*)"
)

COMMON_WORDS = frozenset(
    {
        "a", "an", "the", "and", "but", "or", "so", "just", "also", "very",
        "really", "not", "here", "there", "sure", "sorry", "glad", "happy",
        "fine", "good", "great", "ok", "okay", "yes", "no", "well", "back",
        "new", "going", "trying", "looking", "working", "interested",
        "excited", "curious", "hello", "hi", "hey", "thanks",
    }
)

PRONOUNS = frozenset(
    {
        "i", "me", "my", "mine", "you", "your", "he", "him", "his", "she",
        "her", "it", "its", "we", "us", "our", "they", "them", "their",
    }
)

TOPIC_PATTERN = re.compile(
    r"\b(?:love|like|enjoy|interested\s+in|passionate\s+about)\s+([^.!?\n]+)",
    re.IGNORECASE,
)
TOPIC_MIN_LENGTH = 2
TOPIC_MAX_LENGTH = 50
TOPIC_FILLERS = ("to discuss", "about them")

TECHNOLOGY_VOCABULARY = (
    "neo4j",
    "database",
    "AI",
    "machine learning",
    "python",
    "javascript",
    "typescript",
    "react",
    "node.js",
    "graph database",
)

# Anchored at a word start; a plural suffix still counts as a match
TECHNOLOGY_PATTERNS = tuple(
    (term.lower(), re.compile(rf"\b{re.escape(term)}(?:e?s)?\b", re.IGNORECASE))
    for term in TECHNOLOGY_VOCABULARY
)

INTERROGATIVE_PATTERN = re.compile(r"\b(?:what|how|why|when|where|who)\b", re.IGNORECASE)


def merge_confidence(existing: float | None, incoming: float) -> float:
    """Raise-only confidence merge: the stored value never decreases."""
    if existing is None:
        return incoming
    return max(existing, incoming)


def extract_entities(text: str | None) -> list[ExtractedEntity]:
    """
    Extract entities from message text.

    Args:
        text: Message content

    Returns:
        Entities in rule order (Person, Topic, Technology, Question). Repeated
        (type, value) candidates collapse into one entry carrying the highest
        confidence. Content shorter than 3 characters yields no entities.
    """
    if not text or len(text) < MIN_CONTENT_LENGTH:
        return []

    candidates = [
        *_extract_people(text),
        *_extract_topics(text),
        *_extract_technologies(text),
        *_extract_questions(text),
    ]

    merged: dict[tuple[str, str], ExtractedEntity] = {}
    for entity in candidates:
        previous = merged.get(entity.key)
        confidence = merge_confidence(
            previous.confidence if previous else None, entity.confidence
        )
        merged[entity.key] = ExtractedEntity(entity.type, entity.value, confidence)

    entities = list(merged.values())

    logger.debug(
        "Extracted entities",
        count=len(entities),
        types=[entity.type.value for entity in entities],
    )

    return entities


def _extract_people(text: str) -> list[ExtractedEntity]:
    people = []
    for match in PERSON_PATTERN.finditer(text):
        name = match.group(1).strip()
        first_token = name.split()[0].lower()
        if _is_denied(name.lower()) or _is_denied(first_token):
            continue
        people.append(ExtractedEntity(EntityType.PERSON, name, PERSON_CONFIDENCE))
    return people


def _is_denied(word: str) -> bool:
    return word in COMMON_WORDS or word in PRONOUNS


def _extract_topics(text: str) -> list[ExtractedEntity]:
    topics = []
    for match in TOPIC_PATTERN.finditer(text):
        topic = match.group(1).strip()
        if not TOPIC_MIN_LENGTH < len(topic) < TOPIC_MAX_LENGTH:
            continue
        lowered = topic.lower()
        if any(filler in lowered for filler in TOPIC_FILLERS):
            continue
        topics.append(ExtractedEntity(EntityType.TOPIC, topic, TOPIC_CONFIDENCE))
    return topics


def _extract_technologies(text: str) -> list[ExtractedEntity]:
    return [
        ExtractedEntity(EntityType.TECHNOLOGY, term, TECHNOLOGY_CONFIDENCE)
        for term, pattern in TECHNOLOGY_PATTERNS
        if pattern.search(text)
    ]


def _extract_questions(text: str) -> list[ExtractedEntity]:
    if "?" not in text or not INTERROGATIVE_PATTERN.search(text):
        return []
    preview = f"{text[:QUESTION_PREVIEW_LENGTH]}..."
    return [ExtractedEntity(EntityType.QUESTION, preview, QUESTION_CONFIDENCE)]
