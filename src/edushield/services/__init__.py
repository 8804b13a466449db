from .faculty_assignments import FacultyAssignmentService
from .fees import StudentFeeService
from .guardian_assignments import GuardianAssignmentService
from .performances import StudentPerformanceService
from .relationships import SqlRelationshipGraph
from .students import StudentService
from .users import UserService

__all__ = [
    "FacultyAssignmentService",
    "GuardianAssignmentService",
    "SqlRelationshipGraph",
    "StudentFeeService",
    "StudentPerformanceService",
    "StudentService",
    "UserService",
]
