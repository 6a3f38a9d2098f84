from sqlalchemy import Column, Integer, String, Text, DateTime
from sqlalchemy.orm import declarative_base
from datetime import datetime

Base = declarative_base()


# ===== REVIEW =====

class WrongAnswer(Base):
    __tablename__ = 'wrong_answers'
    id = Column(Integer, primary_key=True)
    question = Column(Text, nullable=False)
    user_answer = Column(Text)        # JSON-encoded (index or text)
    correct_answer = Column(Text)     # JSON-encoded
    topic = Column(String(255), default='')
    explanation = Column(Text, default='')
    review_count = Column(Integer, default=0)
    created_at = Column(DateTime, default=datetime.utcnow)
