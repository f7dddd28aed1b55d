from decimal import Decimal
from pathlib import Path
import sys


# Ensure imports work when running this file directly: `python scripts/init_db.py`.
ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from mosque_edu.db import Base, SessionLocal, engine
from mosque_edu.models import Classroom, Course, Member, Organization, ScheduledClass, Teacher
from mosque_edu.services.enrollment_service import enroll
from mosque_edu.services.fund_service import provision_education_fund


Base.metadata.create_all(bind=engine)

db = SessionLocal()
try:
    if not db.query(Organization).first():
        org = Organization(name='Masjid Al-Noor', slug='al-noor')
        db.add(org)
        db.commit()
        db.refresh(org)
        provision_education_fund(db, org_id=org.id)

        classroom = Classroom(organization_id=org.id, name='Room 1', capacity=20)
        course = Course(organization_id=org.id, name='Quran Recitation', tuition_fee=Decimal('600.00'))
        db.add_all([classroom, course])
        db.commit()

        scheduled_class = ScheduledClass(
            organization_id=org.id,
            classroom_id=classroom.id,
            course_id=course.id,
            name='Quran Recitation - Weekend',
        )
        teacher_member = Member(organization_id=org.id, first_name='Yusuf', last_name='Rahman')
        students = [
            Member(organization_id=org.id, first_name='Aisha', last_name='Khan', household_id=1),
            Member(organization_id=org.id, first_name='Omar', last_name='Khan', household_id=1),
            Member(organization_id=org.id, first_name='Maryam', last_name='Siddiqui', household_id=2),
        ]
        db.add_all([scheduled_class, teacher_member, *students])
        db.commit()

        db.add(Teacher(organization_id=org.id, member_id=teacher_member.id))
        db.commit()

        for student in students:
            enroll(db, org_id=org.id, member_id=student.id, class_id=scheduled_class.id, monthly_fee=Decimal('50.00'))
finally:
    db.close()

print('DB initialized with sample data.')
