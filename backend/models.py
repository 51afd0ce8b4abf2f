from database import Base
from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text
from utils.serializers import utc_now


class ChatSession(Base):
    __tablename__ = "chat_sessions"

    id = Column(String, primary_key=True, index=True)  # Session id, [A-Za-z0-9-]+
    policy = Column(String, nullable=False, default="broadcast")
    streaming_enabled = Column(Boolean, default=True)
    user_name = Column(String, nullable=True)
    message_count = Column(Integer, default=0)
    payload = Column(Text, nullable=False)  # SessionSnapshot JSON
    created_at = Column(DateTime, default=utc_now)
    updated_at = Column(DateTime, default=utc_now, index=True)
