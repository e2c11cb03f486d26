from datetime import date
from typing import Dict, Optional
from uuid import UUID

from app.auth.security import TokenIssuer, new_session_id
from app.core.clock import utcnow
from app.core.enums import AdminRole

TEST_PASSWORD = "Password123!"


def years_ago(years: int, extra_days: int = 30) -> date:
    """A birth date that makes someone `years` old today (with some margin)."""
    today = utcnow().date()
    return date.fromordinal(today.toordinal() - int(years * 365.25) - extra_days)


def student_payload(first_name: str = "Alice", age: int = 7, **fields) -> Dict:
    payload = {
        "first_name": first_name,
        "last_name": "Student",
        "date_of_birth": years_ago(age).isoformat(),
        "gender": "female",
        "address": "1 Main St",
        "guardian_name": "Parent",
        "guardian_phone": "1111111111",
    }
    payload.update(fields)
    return payload


def short_token_for(
    issuer: TokenIssuer, user_id: UUID, role: AdminRole, school_id: Optional[UUID] = None
) -> str:
    return issuer.issue_short_token(
        user_id=user_id,
        user_key="user@test.com",
        session_id=new_session_id(),
        device_id=None,
        role=role.value,
        school_id=school_id,
    )


def auth_headers(token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"}
