# app/schemas/common.py
from sqlmodel import SQLModel


class ActionResult(SQLModel):
    """
    Envelope returned by operations that only report an outcome.

    Failures use the same keys plus `error` and `details`
    (see app.core.errors.ShopError.to_dict).
    """

    success: bool = True
    message: str
