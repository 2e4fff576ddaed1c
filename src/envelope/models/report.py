"""Models capturing reports filed against posts."""

from sqlalchemy import ForeignKey, Index, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from envelope.db.session import Base


class PostReport(Base):
    """A device flagging a post with a free-text reason.

    No uniqueness on (post, device): repeated reports are kept.
    """

    __tablename__ = "reports"
    __table_args__ = (
        Index("ix_reports_post_id", "post_id"),
        {"sqlite_autoincrement": True},
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    post_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("posts.id", ondelete="CASCADE"),
        nullable=False,
    )
    device_id: Mapped[str] = mapped_column(Text, nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
