"""
Question model and normalization of generator payloads.
"""
import string
from typing import Any, List, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict

from cse_reviewer.core.exceptions import GenerationFailure


class Question(BaseModel):
    """A single multiple-choice question. Immutable once added to a session."""

    model_config = ConfigDict(frozen=True)

    text: str
    options: List[str]
    answer: int
    category: str = "General Knowledge"
    difficulty: Optional[str] = None
    explanation: Optional[str] = None
    id: Optional[Union[int, str]] = None
    type: Optional[str] = None

    @property
    def has_stable_id(self) -> bool:
        return self.id is not None and str(self.id) != ""


def normalize_options(raw_options: Any) -> List[str]:
    """
    Normalize generator options into an ordered list.

    Keyed structures such as ``{"A": "...", "B": "..."}`` keep their key order.

    Raises:
        GenerationFailure: If options are neither a list nor a mapping
    """
    if isinstance(raw_options, list):
        options = raw_options
    elif isinstance(raw_options, Mapping):
        options = list(raw_options.values())
    else:
        raise GenerationFailure(f"Options are not a list: {type(raw_options).__name__}")

    options = [str(option) for option in options]
    if len(options) < 2:
        raise GenerationFailure("Question has fewer than two options")
    return options


def resolve_answer_index(payload: Mapping[str, Any], option_count: int) -> int:
    """
    Resolve the correct option index from ``correctAnswer`` or ``answer``.

    ``correctAnswer`` may be a letter ("A".."Z") or an integer index.

    Raises:
        GenerationFailure: If no usable answer is present or it is out of range
    """
    raw = payload.get("correctAnswer", payload.get("correct_answer"))
    if raw is None:
        raw = payload.get("answer")

    if isinstance(raw, bool):
        raise GenerationFailure("Answer is not an index")
    if isinstance(raw, int):
        index = raw
    elif isinstance(raw, str) and raw.strip():
        token = raw.strip()
        if token.isdigit():
            index = int(token)
        else:
            letter = token[0].upper()
            if letter not in string.ascii_uppercase:
                raise GenerationFailure(f"Unrecognized answer letter: {raw!r}")
            index = ord(letter) - ord("A")
    else:
        raise GenerationFailure("Question has no answer")

    if not 0 <= index < option_count:
        raise GenerationFailure(f"Answer index {index} out of range")
    return index


def parse_generated_question(
    payload: Any,
    default_category: str,
    default_explanation: Optional[str] = "No explanation provided",
) -> Question:
    """
    Build a Question from one item of a generator response.

    Args:
        payload: Raw question dict from the generator
        default_category: Category used when the payload has none

    Returns:
        Normalized question

    Raises:
        GenerationFailure: If the payload is malformed
    """
    if not isinstance(payload, Mapping):
        raise GenerationFailure("Question payload is not an object")

    text = payload.get("question") or payload.get("questionText")
    if not isinstance(text, str) or not text.strip():
        raise GenerationFailure("Question text missing")

    options = normalize_options(payload.get("options"))
    answer = resolve_answer_index(payload, len(options))

    return Question(
        text=text.strip(),
        options=options,
        answer=answer,
        category=payload.get("category") or default_category,
        difficulty=payload.get("difficulty"),
        explanation=payload.get("explanation") or default_explanation,
        id=payload.get("_id") or payload.get("id"),
        type=payload.get("type"),
    )


def parse_generation_response(response: Any, default_category: str) -> Question:
    """
    Take the first question out of a ``{success, questions}`` generator response.

    Raises:
        GenerationFailure: If the response is unsuccessful or empty
    """
    if not isinstance(response, Mapping) or not response.get("success"):
        raise GenerationFailure("Generator reported failure")

    questions = response.get("questions")
    if not isinstance(questions, list) or not questions:
        raise GenerationFailure("Generator returned no questions")

    return parse_generated_question(questions[0], default_category)
