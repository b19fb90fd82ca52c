"""Attempt model: immutable ledger entry for one completed session."""
from sqlalchemy import Column, DateTime, Integer, String, Text, UniqueConstraint
from sqlalchemy.sql import func

from mathtrainer.db.session import Base


class TrainerAttempt(Base):
    __tablename__ = "trainer_attempts"
    # NULL tokens never collide, so token-less records are not deduplicated
    __table_args__ = (
        UniqueConstraint(
            "learner_id", "trainer_id", "attempt_token", name="uq_trainer_attempts_token"
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    learner_id = Column(String(64), nullable=False, index=True)
    trainer_id = Column(String(128), nullable=False, index=True)
    attempt_token = Column(String(128), nullable=True)
    kind = Column(String(32), nullable=False)  # column | mental | drill
    level = Column(String(64), nullable=False)  # accuracy | speed | race | lvl1 ...
    preset_id = Column(String(64), nullable=True)  # race:2 etc.
    # raw request payload as JSON
    result_json = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
