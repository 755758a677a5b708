from .user import User, UserRole
from .catalog import Category, Course, Review, Enrollment
