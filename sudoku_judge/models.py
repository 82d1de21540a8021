from sqlalchemy import (Column, Integer, String, Text, Boolean, DateTime, ForeignKey,
                        UniqueConstraint, Index)
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker, declarative_base
from datetime import datetime
import enum

from .config import DATABASE_URL, DEFAULT_TIME_LIMIT, DEFAULT_MEMORY_LIMIT

engine = create_async_engine(DATABASE_URL, echo=False)
async_session = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
Base = declarative_base()

class JudgeStatus(str, enum.Enum):
    PENDING = "PENDING"
    ACCEPTED = "AC"
    WRONG_ANSWER = "WA"
    TIME_LIMIT = "TLE"
    RUNTIME_ERROR = "RE"
    COMPILE_ERROR = "CE"

class User(Base):
    __tablename__ = "users"
    __table_args__ = (UniqueConstraint("username", "phone", name="uniq_username_phone"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(50), nullable=False)
    phone = Column(String(20), nullable=False)
    # Written only by the ranking engine; null while the user has no AC
    total_time_ms = Column(Integer, nullable=True)
    total_memory_kb = Column(Integer, nullable=True)
    rank = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

class Problem(Base):
    __tablename__ = "problems"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(100), nullable=False, default="")
    description = Column(Text, default="")
    time_limit_ms = Column(Integer, nullable=False, default=DEFAULT_TIME_LIMIT)
    memory_limit_kb = Column(Integer, nullable=False, default=DEFAULT_MEMORY_LIMIT)
    created_at = Column(DateTime, default=datetime.utcnow)

class TestCase(Base):
    __tablename__ = "test_cases"
    __test__ = False  # not a pytest class

    id = Column(Integer, primary_key=True, autoincrement=True)
    problem_id = Column(Integer, ForeignKey("problems.id", ondelete="CASCADE"), nullable=False)
    input_text = Column(Text, nullable=False)
    expected_output = Column(Text, nullable=False)
    is_sample = Column(Boolean, nullable=False, default=False)

class Submission(Base):
    __tablename__ = "submissions"
    __table_args__ = (Index("idx_user_problem", "user_id", "problem_id"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    problem_id = Column(Integer, ForeignKey("problems.id", ondelete="CASCADE"), nullable=False)
    language = Column(String(20), nullable=False, default="cpp")
    status = Column(String(8), nullable=False, default=JudgeStatus.PENDING.value)
    exec_time_ms = Column(Integer, nullable=True)
    memory_kb = Column(Integer, nullable=True)
    code = Column(Text, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

class SubmissionResult(Base):
    __tablename__ = "submission_results"

    id = Column(Integer, primary_key=True, autoincrement=True)
    submission_id = Column(Integer, ForeignKey("submissions.id", ondelete="CASCADE"),
                           nullable=False, index=True)
    test_case_id = Column(Integer, ForeignKey("test_cases.id", ondelete="CASCADE"), nullable=False)
    status = Column(String(8), nullable=False)
    exec_time_ms = Column(Integer, nullable=True)
    memory_kb = Column(Integer, nullable=True)
    stdout = Column(Text, default="")
    stderr = Column(Text, default="")
    created_at = Column(DateTime, default=datetime.utcnow)

async def init_db(bind=None):
    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

async def get_session():
    async with async_session() as session:
        yield session
