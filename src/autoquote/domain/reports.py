"""Models for the comparison report."""

from pydantic import BaseModel, Field

DEFAULT_DISCLAIMER = (
    "These are rough estimates based on phone conversations. Actual prices may "
    "vary after in-person inspection. Always get a written quote before "
    "authorizing repairs."
)


class PriceRange(BaseModel):
    """Quoted price bounds in dollars."""

    low: float | None = None
    high: float | None = None


class ShopQuote(BaseModel):
    """One shop's entry in the comparison."""

    shop_id: str
    shop_name: str
    price_range: PriceRange = Field(default_factory=PriceRange)
    timeframe_days: float | None = None
    can_do_work: bool = False
    requires_inspection: bool = False
    notes: str = ""
    recommendation_score: int = Field(default=1, ge=1, le=10)


class BestPick(BaseModel):
    """Shop ids of the best options per criterion."""

    by_price: str | None = None
    by_time: str | None = None
    overall: str | None = None


class Report(BaseModel):
    """Ranked comparison of all shops contacted in a session."""

    summary: str
    quotes: list[ShopQuote] = Field(default_factory=list)
    best_pick: BestPick = Field(default_factory=BestPick)
    disclaimer: str = DEFAULT_DISCLAIMER
