"""
Upstream Course Models
Owned by the course/enrollment side of the application. The certificate
pipeline only reads them.
"""

from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Text, func
from app.database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    name = Column(String(200), nullable=False)
    email = Column(String(255), nullable=True)


class Course(Base):
    __tablename__ = "courses"

    id = Column(Integer, primary_key=True)
    title = Column(String(255), nullable=False)
    course_type = Column(String(20), nullable=False, default="cpd")
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class CpdTopic(Base):
    """Topics of a CPD course"""
    __tablename__ = "cpd_topics"

    id = Column(Integer, primary_key=True)
    course_id = Column(Integer, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True)
    topic_number = Column(Integer, nullable=True)
    title = Column(String(255), nullable=False)
    order_index = Column(Integer, nullable=True)


class QualUnit(Base):
    """Units of a qualification course"""
    __tablename__ = "qual_units"

    id = Column(Integer, primary_key=True)
    course_id = Column(Integer, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True)
    unit_number = Column(Integer, nullable=True)
    title = Column(String(255), nullable=False)
    credits = Column(Integer, nullable=True)


class Unit(Base):
    """Legacy generic units table shared by every course type"""
    __tablename__ = "units"

    id = Column(Integer, primary_key=True)
    course_id = Column(Integer, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    content = Column(Text, nullable=True)
    order_index = Column(Integer, nullable=True)
