"""
Per-user mastery tracking for bank questions.
"""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from cse_reviewer.db.base import Base


class UserQuestionProgress(Base):
    """Mastery status of one question for one user."""

    __tablename__ = "user_question_progress"
    __table_args__ = (UniqueConstraint("user_id", "question_id", name="unique_user_question"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    question_id = Column(Integer, ForeignKey("questions.id", ondelete="CASCADE"), nullable=False)

    correct_streak = Column(Integer, default=0)
    status = Column(String, default="needs-review")  # needs-review, learning, mastered
    total_attempts = Column(Integer, default=0)
    correct_attempts = Column(Integer, default=0)
    last_answered_at = Column(DateTime(timezone=True), nullable=True)
    mastered_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    user = relationship("User", back_populates="question_progress")
    question = relationship("Question", back_populates="progress")
