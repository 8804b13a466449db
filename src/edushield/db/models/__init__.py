# Import every model so Base.metadata sees all tables.
from .users import User
from .guardians import Guardian
from .faculty import Faculty
from .students import Student
from .student_guardians import StudentGuardian
from .student_faculty import StudentFaculty
from .student_performances import StudentPerformance
from .student_fees import StudentFee

__all__ = [
    "User",
    "Guardian",
    "Faculty",
    "Student",
    "StudentGuardian",
    "StudentFaculty",
    "StudentPerformance",
    "StudentFee",
]
