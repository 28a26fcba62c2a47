from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.schema import Column, Index
from sqlalchemy.types import BigInteger, Boolean, DateTime, Integer, JSON, String, Uuid
from uuid6 import uuid7
from datetime import datetime


class Base(DeclarativeBase):
    pass


class User(Base):
    __tablename__ = "users"
    username = Column(String, primary_key=True)
    balance = Column(BigInteger, nullable=False, default=0)
    duel_opt_out = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)


class DuelLog(Base):
    __tablename__ = "duel_log"
    duel_id = Column(Uuid, primary_key=True, default=uuid7)
    challenger = Column(String, nullable=False, index=True)
    target = Column(String, nullable=False, index=True)
    amount = Column(Integer, nullable=False)
    challenger_grid = Column(JSON, nullable=False)
    target_grid = Column(JSON, nullable=False)
    challenger_score = Column(Integer, nullable=False)
    target_score = Column(Integer, nullable=False)
    winner = Column(String, nullable=True)  # None is a tie
    pot = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=datetime.now)

    __table_args__ = (Index("idx_duel_log_created", created_at.desc()),)
