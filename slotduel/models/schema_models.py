from pydantic import BaseModel, Field
from typing import List, Optional
from uuid import UUID
from datetime import datetime


class UserSchema(BaseModel):
    username: str
    balance: int
    duel_opt_out: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class DuelDataSchema(BaseModel):
    """Value stored under duel:{challenger}. Field names match the persisted JSON."""

    target: str
    amount: int
    created_at: int = Field(alias="createdAt")  # epoch milliseconds

    class Config:
        populate_by_name = True


class DuelChallengeSchema(BaseModel):
    challenger: str
    target: str
    amount: int
    created_at: int  # epoch milliseconds


class DuelLogSchema(BaseModel):
    challenger: str
    target: str
    amount: int
    challenger_grid: List[str]
    target_grid: List[str]
    challenger_score: int
    target_score: int
    winner: Optional[str]
    pot: int


class DuelHistorySchema(DuelLogSchema):
    duel_id: UUID
    created_at: datetime

    class Config:
        from_attributes = True
