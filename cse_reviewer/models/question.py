"""
Question bank model.
"""
from sqlalchemy import Column, Integer, String, DateTime, Text, JSON
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from cse_reviewer.db.base import Base


class Question(Base):
    """Multiple choice question stored in the bank."""

    __tablename__ = "questions"

    id = Column(Integer, primary_key=True, index=True)
    question_text = Column(Text, nullable=False, index=True)
    options = Column(JSON, nullable=False)  # List of 4 option strings
    correct_answer = Column(String(1), nullable=False)  # "A".."D"
    explanation = Column(Text, nullable=True)
    category = Column(String, nullable=False, index=True)
    sub_category = Column(String, nullable=True)
    difficulty = Column(String, default="Normal")  # Easy, Normal, Hard
    source = Column(String, default="ai")  # ai, manual
    usage_count = Column(Integer, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    progress = relationship("UserQuestionProgress", back_populates="question", cascade="all, delete-orphan")

    @property
    def answer_index(self) -> int:
        return ord(self.correct_answer.upper()) - ord("A")
