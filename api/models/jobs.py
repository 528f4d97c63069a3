"""Job posting model."""

from sqlalchemy import Column, Integer, String, ForeignKey
from sqlalchemy.orm import relationship

from .base import BaseModel


class JobPosting(BaseModel):
    """
    A role an employer is hiring for.

    Salary bounds are annual, in cents. Either may be missing, in which case
    fee estimates fall back to whichever bound is known.
    """

    __tablename__ = "job_postings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    employer_id = Column(Integer, ForeignKey("employers.id"), nullable=False)
    title = Column(String(255), nullable=False)

    salary_min = Column(Integer, nullable=True)
    salary_max = Column(Integer, nullable=True)

    # ENTRY_LEVEL, MID_LEVEL, SENIOR_LEVEL, EXECUTIVE
    experience_level = Column(String(20), nullable=True)

    employer = relationship("Employer", back_populates="jobs")

    def __repr__(self) -> str:
        return f"<JobPosting(id={self.id}, title={self.title})>"
