from sqlalchemy import Column, String, Enum, Text
from app.models.base import BaseModel, TimestampMixin
import enum

class UserRole(enum.Enum):
    STUDENT = "student"
    INSTRUCTOR = "instructor"
    ADMIN = "admin"

class User(BaseModel, TimestampMixin):
    __tablename__ = "users"

    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    role = Column(Enum(UserRole, values_callable=lambda obj: [e.value for e in obj],
        native_enum=False), default=UserRole.STUDENT, nullable=False)
    avatar = Column(Text)
    bio = Column(Text)
