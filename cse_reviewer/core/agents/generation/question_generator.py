"""
Question generator for practice exams.
Uses the LLM to write new multiple-choice questions while steering clear of
questions the examinee has already seen.
"""
import json
import logging
import re
from typing import Any, Dict, Iterable, List, Optional

from langchain_core.messages import HumanMessage, SystemMessage

from cse_reviewer.core.config import settings
from cse_reviewer.core.exceptions import GenerationFailure
from cse_reviewer.core.llm_config import LLMFactory
from cse_reviewer.core.agents.generation.prompts import (
    AVOID_BLOCK_HEADER,
    QUESTION_GENERATION_SYSTEM_PROMPT,
    QUESTION_GENERATION_USER_PROMPT,
    SUB_TOPIC_BLOCK,
)

logger = logging.getLogger(__name__)

LETTERS = "ABCD"
BATCH_SIZE = 10

_OPTION_PREFIX = re.compile(r"^[A-D][\).:]\s*", re.IGNORECASE)
_TRAILING_COMMA = re.compile(r",(\s*[}\]])")
_ADJACENT_OBJECTS = re.compile(r"}\s*{")
_FLAT_OBJECT = re.compile(r"{[^{}]*}")


def normalize_text(text: str) -> str:
    """Key used to compare question texts."""
    return " ".join(text.lower().split())


def parse_llm_json(text: str) -> Any:
    """
    Parse JSON out of an LLM reply.

    Tries the raw text, then a cleaned copy (code fences and trailing commas
    removed), then salvages individual flat objects.

    Raises:
        GenerationFailure: If nothing parseable is found
    """
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        logger.warning("Initial JSON parse failed, attempting cleanup...")

    cleaned = text.strip()
    cleaned = cleaned.replace("```json", "").replace("```", "")
    cleaned = _TRAILING_COMMA.sub(r"\1", cleaned)
    cleaned = _ADJACENT_OBJECTS.sub("},{", cleaned)
    starts = [i for i in (cleaned.find("["), cleaned.find("{")) if i != -1]
    if starts:
        cleaned = cleaned[min(starts):]

    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        pass

    salvaged = []
    for match in _FLAT_OBJECT.findall(text):
        try:
            obj = json.loads(match)
        except json.JSONDecodeError:
            continue
        if isinstance(obj, dict) and obj.get("question") and obj.get("options"):
            salvaged.append(obj)
    if salvaged:
        return salvaged

    logger.error(f"All JSON parsing attempts failed: {text[:500]}")
    raise GenerationFailure("AI generated an unreadable or incomplete JSON response")


def extract_question_list(parsed: Any) -> List[Dict[str, Any]]:
    if isinstance(parsed, list):
        return [q for q in parsed if isinstance(q, dict)]
    if isinstance(parsed, dict):
        if isinstance(parsed.get("questions"), list):
            return [q for q in parsed["questions"] if isinstance(q, dict)]
        if "question" in parsed:
            return [parsed]
    return []


def validate_generated(raw: Dict[str, Any], topic: str, difficulty: str) -> Optional[Dict[str, Any]]:
    """Normalize one generated item, or None if it cannot be used."""
    text = raw.get("question")
    options = raw.get("options")
    if not isinstance(text, str) or not text.strip():
        return None
    if not isinstance(options, list) or len(options) != 4:
        return None

    answer = raw.get("correctAnswer", raw.get("correct_answer"))
    if isinstance(answer, int) and not isinstance(answer, bool) and 0 <= answer < 4:
        letter = LETTERS[answer]
    elif isinstance(answer, str) and answer.strip() and answer.strip()[0].upper() in LETTERS:
        letter = answer.strip()[0].upper()
    else:
        return None

    return {
        "question": text.strip(),
        "options": [_OPTION_PREFIX.sub("", str(option)).strip() for option in options],
        "correctAnswer": letter,
        "explanation": raw.get("explanation") or "See study materials.",
        "category": topic,
        "difficulty": raw.get("difficulty") or difficulty,
    }


class QuestionGenerator:
    """
    Generates multiple-choice questions for one topic with the LLM.
    """

    def __init__(self, llm=None):
        self.llm = llm or LLMFactory.create_llm(
            temperature=0.8,
            json_mode=True,
            tracing_project="cse-question-generation",
            timeout=settings.API_TIMEOUT_SECONDS,
        )

    def build_prompt(
        self,
        topic: str,
        difficulty: str,
        count: int,
        avoid_questions: Iterable[str] = (),
        sub_topic: Optional[str] = None,
    ) -> str:
        """Build the user prompt; only the most recent avoid entries are included."""
        sub_topic_block = ""
        if sub_topic and sub_topic.strip():
            sub_topic_block = SUB_TOPIC_BLOCK.format(sub_topic=sub_topic.strip(), topic=topic)

        avoid = list(avoid_questions)[-settings.AVOID_LIST_PROMPT_LIMIT:]
        avoid_block = ""
        if avoid:
            avoid_block = AVOID_BLOCK_HEADER + "\n".join(f"{i}. {q}" for i, q in enumerate(avoid, 1)) + "\n"

        return QUESTION_GENERATION_USER_PROMPT.format(
            count=count,
            topic=topic,
            difficulty=difficulty,
            sub_topic_block=sub_topic_block,
            avoid_block=avoid_block,
        )

    def generate_questions(
        self,
        topic: str,
        difficulty: str = "Normal",
        count: int = 5,
        avoid_questions: Iterable[str] = (),
        sub_topic: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """
        Generate questions for a topic.

        Args:
            topic: Exam section label, e.g. "Verbal Ability"
            difficulty: Easy, Normal or Hard
            count: Number of questions wanted
            avoid_questions: Question texts that must not be repeated
            sub_topic: Optional narrower focus within the topic

        Returns:
            Validated questions with letter answers; may be fewer than ``count``

        Raises:
            GenerationFailure: If the LLM call fails or yields nothing usable
        """
        avoid = list(avoid_questions)
        seen = {normalize_text(q) for q in avoid}
        questions: List[Dict[str, Any]] = []

        remaining = count
        while remaining > 0:
            batch = min(remaining, BATCH_SIZE)
            remaining -= batch

            user_prompt = self.build_prompt(topic, difficulty, batch, avoid, sub_topic)
            messages = [
                SystemMessage(content=QUESTION_GENERATION_SYSTEM_PROMPT),
                HumanMessage(content=user_prompt),
            ]

            logger.info(f"Generating {batch} '{topic}' questions with LLM...")
            try:
                response = self.llm.invoke(messages)
            except Exception as e:
                logger.error(f"LLM call failed for {topic}: {e}")
                raise GenerationFailure(f"Failed to get response from AI service: {e}") from e

            for raw in extract_question_list(parse_llm_json(str(response.content))):
                item = validate_generated(raw, topic, difficulty)
                if item is None:
                    continue
                key = normalize_text(item["question"])
                if key in seen:
                    logger.info(f"Dropping repeated question: {item['question'][:60]}")
                    continue
                seen.add(key)
                avoid.append(item["question"])
                questions.append(item)

        if not questions:
            raise GenerationFailure(f"AI generated no valid questions for {topic}")

        logger.info(f"Successfully generated {len(questions)} questions for {topic}")
        return questions[:count]
