"""
Local question pool used when continuous generation fails.
"""
import random
from typing import Iterable, List, Optional

from cse_reviewer.engine.questions import Question

FALLBACK_QUESTIONS: List[Question] = [
    Question(
        text="What is the capital of the Philippines?",
        options=["Cebu", "Davao", "Manila", "Baguio"],
        answer=2,
        category="General Knowledge",
    ),
    Question(
        text="2 + 2 * 2 = ?",
        options=["4", "6", "8", "10"],
        answer=1,
        category="Numerical Ability",
    ),
    Question(
        text="Choose the word closest in meaning to METICULOUS.",
        options=["Careless", "Thorough", "Hasty", "Generous"],
        answer=1,
        category="Verbal Ability",
    ),
    Question(
        text="What is the largest ocean on Earth?",
        options=["Atlantic", "Indian", "Arctic", "Pacific"],
        answer=3,
        category="General Knowledge",
    ),
    Question(
        text="Who wrote 'Noli Me Tangere'?",
        options=["Andres Bonifacio", "Jose Rizal", "Emilio Aguinaldo", "Apolinario Mabini"],
        answer=1,
        category="General Knowledge",
    ),
    Question(
        text="Which branch of government interprets the law under the 1987 Constitution?",
        options=["Executive", "Legislative", "Judiciary", "Commission on Audit"],
        answer=2,
        category="Philippine Constitution",
    ),
    Question(
        text="What comes next in the series: 3, 6, 12, 24, ...?",
        options=["30", "36", "48", "42"],
        answer=2,
        category="Analytical Ability",
    ),
    Question(
        text="Which name comes first in alphabetical filing order?",
        options=["Santos, Maria", "Santiago, Jose", "Santos, Ana", "Sanchez, Pedro"],
        answer=3,
        category="Clerical Ability",
    ),
]


def pick_fallback_question(
    seen_texts: Iterable[str],
    rng: Optional[random.Random] = None,
    pool: Optional[List[Question]] = None,
) -> Optional[Question]:
    """
    Pick a random fallback question whose text has not been seen yet.

    Returns:
        A fallback question, or None once the pool is exhausted
    """
    seen = set(seen_texts)
    candidates = [q for q in (pool if pool is not None else FALLBACK_QUESTIONS) if q.text not in seen]
    if not candidates:
        return None
    return (rng or random).choice(candidates)
