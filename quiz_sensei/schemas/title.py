from pydantic import BaseModel, ConfigDict, Field

from quiz_sensei.schemas.quiz import SourceText


class TitleRequest(BaseModel):
    """Request body for title generation."""
    model_config = ConfigDict(populate_by_name=True)

    user_input: SourceText = Field(..., alias="userInput", description="Text to title and describe")


class TitleResult(BaseModel):
    """Title (about 5 words) and description (about 20 words) in the input's language."""
    title: str
    description: str
