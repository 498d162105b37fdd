"""
Question bank service: AI-first question supply with bank top-up.
"""
import logging
from typing import Any, Dict, List, Optional, Set

from sqlalchemy import func
from sqlalchemy.orm import Session

from cse_reviewer.core.agents.generation.question_generator import QuestionGenerator, normalize_text
from cse_reviewer.core.config import settings
from cse_reviewer.core.exceptions import GenerationFailure
from cse_reviewer.models.question import Question
from cse_reviewer.schemas.question import CategoryRequest, GenerateTestRequest

logger = logging.getLogger(__name__)


def serialize_question(question: Question) -> Dict[str, Any]:
    return {
        "id": question.id,
        "question": question.question_text,
        "options": list(question.options or []),
        "answer": question.answer_index,
        "correct_answer": question.correct_answer,
        "explanation": question.explanation,
        "category": question.category,
        "difficulty": question.difficulty,
        "source": question.source,
    }


class QuestionBankService:
    """Builds question sets for a generate request."""

    def __init__(self, db: Session, generator: Optional[QuestionGenerator] = None):
        self.db = db
        self._generator = generator

    @property
    def generator(self) -> QuestionGenerator:
        if self._generator is None:
            self._generator = QuestionGenerator()
        return self._generator

    def find_existing(self, text: str, topic: str) -> Optional[Question]:
        return (
            self.db.query(Question)
            .filter(func.lower(Question.question_text) == text.strip().lower(), Question.category == topic)
            .first()
        )

    def save_generated(self, item: Dict[str, Any], category: CategoryRequest) -> Optional[Question]:
        """Store a generated question unless the bank already has it."""
        if self.find_existing(item["question"], category.topic):
            logger.info(f"Question already in bank, skipping: {item['question'][:60]}")
            return None

        question = Question(
            question_text=item["question"],
            options=item["options"],
            correct_answer=item["correctAnswer"],
            explanation=item["explanation"],
            category=category.topic,
            sub_category=category.sub_topic or None,
            difficulty=category.difficulty,
            usage_count=1,
            source="ai",
        )
        self.db.add(question)
        self.db.flush()
        return question

    def _generate_into(
        self,
        category: CategoryRequest,
        count: int,
        avoid: List[str],
        used_ids: Set[int],
        seen: Set[str],
        collected: List[Dict[str, Any]],
    ) -> None:
        items = self.generator.generate_questions(
            topic=category.topic,
            difficulty=category.difficulty,
            count=count,
            avoid_questions=avoid,
            sub_topic=category.sub_topic,
        )
        for item in items:
            key = normalize_text(item["question"])
            if key in seen:
                continue
            saved = self.save_generated(item, category)
            if saved is None or saved.id in used_ids:
                continue
            used_ids.add(saved.id)
            seen.add(key)
            avoid.append(saved.question_text)
            collected.append(serialize_question(saved))

    def _top_up_from_bank(
        self,
        category: CategoryRequest,
        need: int,
        used_ids: Set[int],
        seen: Set[str],
        collected: List[Dict[str, Any]],
    ) -> int:
        candidates = (
            self.db.query(Question)
            .filter(Question.category == category.topic)
            .order_by(Question.usage_count.asc(), func.random())
            .limit(need * 3)
            .all()
        )

        added = 0
        for question in candidates:
            if added >= need:
                break
            if question.id in used_ids or normalize_text(question.question_text) in seen:
                continue
            question.usage_count = (question.usage_count or 0) + 1
            used_ids.add(question.id)
            seen.add(normalize_text(question.question_text))
            collected.append(serialize_question(question))
            added += 1
        return added

    def questions_for_category(
        self, category: CategoryRequest, avoid: List[str], used_ids: Set[int], seen: Set[str]
    ) -> List[Dict[str, Any]]:
        """
        AI first, then the bank, then up to GENERATION_MAX_RETRIES more AI rounds.

        An LLM failure on the first round falls straight back to the bank.
        """
        collected: List[Dict[str, Any]] = []
        try:
            self._generate_into(category, category.count, avoid, used_ids, seen, collected)
        except GenerationFailure as e:
            logger.warning(f"AI generation failed for {category.topic}, using question bank: {e}")
            self._top_up_from_bank(category, category.count, used_ids, seen, collected)
            return collected

        need = category.count - len(collected)
        if need > 0:
            added = self._top_up_from_bank(category, need, used_ids, seen, collected)
            logger.info(f"Added {added} questions for {category.topic} from the bank")

        retries = 0
        while len(collected) < category.count and retries < settings.GENERATION_MAX_RETRIES:
            retries += 1
            still_need = category.count - len(collected)
            logger.info(f"Retry {retries}: generating {still_need} more {category.topic} questions")
            try:
                self._generate_into(category, still_need, avoid, used_ids, seen, collected)
            except GenerationFailure as e:
                logger.warning(f"Retry {retries} failed for {category.topic}: {e}")

        return collected

    def generate_test(self, request: GenerateTestRequest) -> List[Dict[str, Any]]:
        """
        Collect questions for every requested category.

        Returns:
            Serialized questions, never containing an avoid-list text
        """
        if request.session_id:
            logger.info(f"Generate request for session {request.session_id} (question {request.question_number})")

        avoid = list(request.avoid_questions)
        seen = {normalize_text(q) for q in avoid}
        used_ids: Set[int] = set()
        questions: List[Dict[str, Any]] = []

        for category in request.categories:
            questions.extend(self.questions_for_category(category, avoid, used_ids, seen))

        self.db.commit()
        return questions
