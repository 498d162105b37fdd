"""
Database initialization and seeding.
"""
import logging

from sqlalchemy.orm import Session

from cse_reviewer.core.security import get_password_hash
from cse_reviewer.engine.fallback import FALLBACK_QUESTIONS
from cse_reviewer.models.question import Question
from cse_reviewer.models.user import User

logger = logging.getLogger(__name__)


def seed_question_bank(db: Session) -> int:
    """
    Store the local fallback questions in the bank so bank top-up has
    something to serve before the first AI generation.

    Returns:
        Number of questions added
    """
    added = 0
    for item in FALLBACK_QUESTIONS:
        exists = db.query(Question).filter(Question.question_text == item.text).first()
        if exists:
            continue
        db.add(Question(
            question_text=item.text,
            options=list(item.options),
            correct_answer=chr(ord("A") + item.answer),
            explanation=item.explanation,
            category=item.category,
            difficulty="Normal",
            source="manual",
            usage_count=0,
        ))
        added += 1
    db.commit()
    return added


def init_db(db: Session) -> None:
    """
    Initialize database with default data.

    Args:
        db: Database session
    """
    admin = db.query(User).filter(User.email == "admin@example.com").first()
    if not admin:
        admin = User(
            email="admin@example.com",
            username="admin",
            full_name="System Administrator",
            hashed_password=get_password_hash("admin123"),
            role="admin",
            is_active=True,
        )
        db.add(admin)
        db.commit()
        db.refresh(admin)
        logger.info("Admin user created successfully")

    added = seed_question_bank(db)
    logger.info(f"Seeded {added} questions into the bank")
