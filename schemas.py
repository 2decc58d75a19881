import math
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def parse_number(value):
    """Read a client-supplied number. Returns None when it is not a finite number."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return int(number) if number.is_integer() else number


def as_number(value, default=0):
    number = parse_number(value)
    return default if number is None else number


def as_amount(value):
    """Non-negative whole amount of money; anything unreadable counts as 0."""
    return max(0, int(as_number(value)))


class SlotPair(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    my_slot: Optional[str] = Field(None, alias='mySlot')              # slot in the sender's roster
    opponent_slot: Optional[str] = Field(None, alias='opponentSlot')  # slot in the receiver's roster


class TransferOffer(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra='allow')

    code: Optional[str] = None
    from_id: str = Field(alias='from')
    to_id: str = Field(alias='to')
    pairs: List[SlotPair] = []
    cash_mine: int = Field(0, alias='cashMine')        # paid by the sender to the receiver
    cash_theirs: int = Field(0, alias='cashTheirs')    # paid by the receiver to the sender

    @field_validator('from_id', 'to_id')
    @classmethod
    def _not_blank(cls, value):
        if not value:
            raise ValueError('counterparty is required')
        return value

    @field_validator('pairs', mode='before')
    @classmethod
    def _only_pair_objects(cls, value):
        if not isinstance(value, list):
            return []
        return [p for p in value if isinstance(p, dict)]

    @field_validator('cash_mine', 'cash_theirs', mode='before')
    @classmethod
    def _amount(cls, value):
        return as_amount(value)
