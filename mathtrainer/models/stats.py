"""UserStats model: running per-learner totals, updated by deltas only."""
from sqlalchemy import Column, DateTime, Integer, String
from sqlalchemy.sql import func

from mathtrainer.db.session import Base


class UserStats(Base):
    __tablename__ = "user_stats"

    learner_id = Column(String(64), primary_key=True)

    total_problems = Column(Integer, nullable=False, default=0)
    total_correct = Column(Integer, nullable=False, default=0)
    total_mistakes = Column(Integer, nullable=False, default=0)
    total_time_sec = Column(Integer, nullable=False, default=0)
    sessions_count = Column(Integer, nullable=False, default=0)
    perfect_sessions_count = Column(Integer, nullable=False, default=0)
    race_wins_count = Column(Integer, nullable=False, default=0)

    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=True
    )
