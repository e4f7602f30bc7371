"""Submission model — one row per judged run of a learner's code."""

from sqlalchemy import Boolean, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base, StringIdMixin, TimestampMixin


class Submission(StringIdMixin, TimestampMixin, Base):
    """A judged submission, kept for history and profile stats."""

    __tablename__ = "submission"

    user_id: Mapped[str] = mapped_column(
        ForeignKey("user.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    challenge_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    language_id: Mapped[int] = mapped_column(Integer, nullable=False)  # Judge0 language ID
    code: Mapped[str] = mapped_column(Text, nullable=False)

    passed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    passed_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    def __repr__(self) -> str:
        return (
            f"<Submission id={self.id} user_id={self.user_id} "
            f"challenge_id={self.challenge_id} passed={self.passed}>"
        )
