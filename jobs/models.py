from sqlalchemy import Column, String, DateTime
from database.base import Base


class SchedulerLock(Base):
    """One row per scheduled job; whoever holds locked_until in the future owns the job"""
    __tablename__ = "scheduler_locks"

    name = Column(String(64), primary_key=True)
    locked_until = Column(DateTime, nullable=False)
    locked_at = Column(DateTime, nullable=False)
    locked_by = Column(String(255), nullable=False)

    def __repr__(self):
        return f"<SchedulerLock {self.name} until={self.locked_until} by={self.locked_by}>"
