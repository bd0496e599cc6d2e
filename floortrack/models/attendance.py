from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Index, CheckConstraint, func
from sqlalchemy.orm import relationship
from floortrack.database import Base

class TimeEntry(Base):
    __tablename__ = "time_entries"
    
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    entry_type = Column(String(20), nullable=False)  # 'clock_in', 'break_start', 'break_end', 'clock_out'
    timestamp = Column(DateTime(timezone=True), nullable=False)
    work_mode = Column(String(20))  # 'office' / 'remote', clock_in only
    is_auto = Column(Boolean, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    
    user = relationship("User", back_populates="time_entries")
    
    __table_args__ = (
        CheckConstraint(
            "entry_type IN ('clock_in', 'break_start', 'break_end', 'clock_out')",
            name="ck_time_entries_entry_type"
        ),
        Index("ix_time_entries_user_timestamp", "user_id", "timestamp"),
    )
