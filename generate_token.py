from datetime import timedelta

from sqlmodel import Session

from auth import create_access_token
from database import engine
from services.user_service import get_user_by_email


def generate_token(email: str, session: Session, expiration_minutes: int = 525600) -> str:
    """Generate a token for an existing account for use in development."""
    user = get_user_by_email(session, email.lower().strip())
    if user is None:
        raise LookupError(f"No account exists for {email}")

    return create_access_token(
        user.id, user.username, user.email, timedelta(minutes=expiration_minutes)
    )


if __name__ == "__main__":
    email = input("Enter the email of the account to generate a token for: ")
    with Session(engine) as session:
        token = generate_token(email, session)

    print(
        f"\nGenerated token for {email}. "
        "Send it in the Authorization header as:\n\n"
    )
    print(f"Authorization: Bearer {token}")
