"""Text relevance result types."""

from typing import Annotated

from pydantic import Field

from history_ranker.data_model import StrictBaseModel


class TextMatch(StrictBaseModel):
    """A candidate page and its text relevance score.

    Attributes:
        page_id: Page key.
        score: Non-negative text score.
        fuzzy: True when the score came from the fuzzy fallback.
    """

    page_id: str
    score: Annotated[float, Field(ge=0.0)]
    fuzzy: bool = False
