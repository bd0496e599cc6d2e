from sqlalchemy import Column, Integer, String, Date, Text, ForeignKey, DateTime, UniqueConstraint, func
from sqlalchemy.orm import relationship
from floortrack.database import Base

class LeaveRecord(Base):
    __tablename__ = "leave_records"
    
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    date = Column(Date, nullable=False)
    leave_type = Column(String(20), nullable=False, default="planned")  # 'sick', 'holiday', 'planned', 'personal', 'other'
    reason = Column(Text)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    
    user = relationship("User", back_populates="leave_records")
    
    __table_args__ = (
        UniqueConstraint('user_id', 'date', name='uix_leave_user_date'),
    )
