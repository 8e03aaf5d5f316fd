"""Seed database with demo data."""
import uuid

from taskflow.auth import create_user_token
from taskflow.database import SessionLocal, init_db
from taskflow.models import Company, Task, User
from taskflow.services import task_state


def seed():
    """Seed database with demo data."""
    init_db()
    db = SessionLocal()

    try:
        company = Company(
            id=uuid.UUID('00000000-0000-0000-0000-000000000001'),
            name="Demo Company",
        )
        db.add(company)
        db.flush()

        users_data = [
            {
                'id': uuid.UUID('00000000-0000-0000-0000-000000000101'),
                'name': 'Alice Admin',
                'email': 'admin@demo.local',
                'role': 'admin',
            },
            {
                'id': uuid.UUID('00000000-0000-0000-0000-000000000102'),
                'name': 'Bob Builder',
                'email': 'bob@demo.local',
                'role': 'member',
            },
            {
                'id': uuid.UUID('00000000-0000-0000-0000-000000000103'),
                'name': 'Carol Coder',
                'email': 'carol@demo.local',
                'role': 'member',
            },
        ]
        users = []
        for data in users_data:
            user = User(company_id=company.id, **data)
            db.add(user)
            users.append(user)
        db.flush()

        admin, bob, carol = users
        checklist = task_state.normalize_checklist(
            [
                {'text': 'Write release notes', 'done': True},
                {'text': 'Tag the release', 'done': False},
                {'text': 'Announce', 'done': False},
            ]
        )
        task = Task(
            company_id=company.id,
            created_by_id=admin.id,
            title='Ship v1',
            description='First public release',
            priority='High',
        )
        task.assignees = [bob, carol]
        task_state.apply_checklist(task, checklist)
        db.add(task)
        db.commit()

        print("Database seeded successfully!")
        print("\nAccess tokens (send as Authorization: Bearer <token> or as the channel handshake):")
        for user in users:
            print(f"  {user.email} ({user.role}): {create_user_token(user)}")

    except Exception as e:
        print(f"Error seeding database: {e}")
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    seed()
