"""Post-related Pydantic schemas."""

from pydantic import BaseModel, ConfigDict, Field


class PostView(BaseModel):
    """Post as served to clients; the author and origin address are withheld."""

    postid: int = Field(validation_alias="id")
    post: str = Field(validation_alias="text")
    timestamp: int
    likes: int = 0
    comments: int = 0
    liked: bool = False

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class CommentView(BaseModel):
    """Comment as served to clients."""

    commentid: int = Field(validation_alias="id")
    postid: int = Field(validation_alias="post_id")
    comment: str = Field(validation_alias="text")
    timestamp: int

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)
