from sqlalchemy import Column, Integer, String, Boolean, DateTime, func
from sqlalchemy.orm import relationship
from floortrack.database import Base

class User(Base):
    __tablename__ = "users"
    
    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(100), unique=True, nullable=False, index=True)
    full_name = Column(String(100), nullable=False)
    is_active = Column(Boolean, default=True)
    # Minutes, JS getTimezoneOffset convention (local = UTC - offset); cached on clock-in
    timezone_offset = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    
    time_entries = relationship("TimeEntry", back_populates="user", cascade="all, delete-orphan", passive_deletes=True)
    leave_records = relationship("LeaveRecord", back_populates="user", cascade="all, delete-orphan", passive_deletes=True)
