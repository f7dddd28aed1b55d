from mosque_edu.routers import attendance, enrollments, evaluations, payments

__all__ = [
    'attendance',
    'enrollments',
    'evaluations',
    'payments',
]
