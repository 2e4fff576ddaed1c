"""SQLAlchemy models for posts."""

from sqlalchemy import BigInteger, Index, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from envelope.db.session import Base


class Post(Base):
    """Anonymous text post, append-only.

    Posts are never edited or deleted. The feed orders them by id; the creation
    timestamp only marks pagination boundaries because several posts can share
    the same second.
    """

    __tablename__ = "posts"
    __table_args__ = (
        Index("ix_posts_timestamp_id", "timestamp", "id"),
        # Keep SQLite from handing out the id of a removed max row again.
        {"sqlite_autoincrement": True},
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    device_id: Mapped[str] = mapped_column(Text, nullable=False)
    text: Mapped[str] = mapped_column(Text, nullable=False)
    # Seconds since the epoch, assigned by the server on acceptance.
    timestamp: Mapped[int] = mapped_column(BigInteger, nullable=False)
    # Origin address; stored for abuse handling, never returned to clients.
    ip_addr: Mapped[str] = mapped_column(Text, nullable=False)
