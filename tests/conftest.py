"""
Shared fixtures: in-memory database, API client, authenticated user and
question factories.
"""
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from cse_reviewer.core.security import create_access_token, get_password_hash
from cse_reviewer.db.base import get_db
from cse_reviewer.engine.questions import Question
from cse_reviewer.main import app
from cse_reviewer.models import Base, User
from cse_reviewer.models.question import Question as BankQuestion

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db_session():
    """Fresh schema for every test."""
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db_session):
    """API client bound to the test database."""

    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def _create_user(db_session, email: str, username: str) -> User:
    user = User(
        email=email,
        username=username,
        full_name="Juan Dela Cruz",
        hashed_password=get_password_hash("testpassword123"),
        role="student",
        is_active=True,
    )
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def test_user(db_session):
    return _create_user(db_session, "juan@example.com", "juan")


@pytest.fixture
def other_user(db_session):
    return _create_user(db_session, "maria@example.com", "maria")


@pytest.fixture
def auth_headers(test_user):
    token = create_access_token(subject=str(test_user.id))
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def other_auth_headers(other_user):
    token = create_access_token(subject=str(other_user.id))
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def make_question():
    """Factory for exam-engine questions."""

    def factory(text="What is 1 + 1?", category="General Knowledge", answer=0, **kwargs):
        return Question(
            text=text,
            options=kwargs.pop("options", ["A1", "A2", "A3", "A4"]),
            answer=answer,
            category=category,
            **kwargs,
        )

    return factory


@pytest.fixture
def bank_questions(db_session):
    """A few stored bank questions across two sections."""
    questions = [
        BankQuestion(
            question_text=f"Verbal bank question {i}?",
            options=["One", "Two", "Three", "Four"],
            correct_answer="B",
            explanation="Two is right.",
            category="Verbal Ability",
            difficulty="Normal",
            source="manual",
            usage_count=0,
        )
        for i in range(3)
    ] + [
        BankQuestion(
            question_text="Numerical bank question?",
            options=["10", "20", "30", "40"],
            correct_answer="D",
            explanation="Forty.",
            category="Numerical Ability",
            difficulty="Normal",
            source="manual",
            usage_count=0,
        )
    ]
    db_session.add_all(questions)
    db_session.commit()
    for question in questions:
        db_session.refresh(question)
    return questions
