import logging
from datetime import datetime, timezone
from pathlib import Path

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from jinja2 import Environment, FileSystemLoader, select_autoescape

from config import (
    AWS_ACCESS_KEY,
    AWS_REGION,
    AWS_SECRET_ACCESS_KEY,
    AWS_SES_SENDER_EMAIL,
    OTP_LIFETIME_MINUTES,
    WEBSITE_URL,
)
from database import Todo
from otpmodel.otp_model import Purpose

logger = logging.getLogger("todo_api.email")

TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"

# Set up Jinja env
env = Environment(
    loader=FileSystemLoader(TEMPLATES_DIR),
    autoescape=select_autoescape(["html", "xml", "html.jinja"]),
)

ses = boto3.client(
    "ses",
    region_name=AWS_REGION,
    aws_access_key_id=str(AWS_ACCESS_KEY),
    aws_secret_access_key=str(AWS_SECRET_ACCESS_KEY),
)

# Raised by boto3 when SES rejects a message or cannot be reached
EMAIL_ERRORS = (ClientError, BotoCoreError)

PURPOSE_TEXT = {
    Purpose.SIGNUP: ("Account Signup", "creating your account", "#4ECDC4"),
    Purpose.PASSWORD_RESET: ("Password Reset", "resetting your password", "#FF6B6B"),
}


def format_todo_line(index: int, todo: Todo) -> str:
    status = "[Done]" if todo.done else "[Pending]"
    return (
        f"{index}. {todo.title} - {todo.description or 'No description'} "
        f"({todo.date or 'No date'} {todo.time or 'No time'}) {status}"
    )


class EmailService:
    """Sends transactional email through SES."""

    def __init__(self, client=ses, sender: str = AWS_SES_SENDER_EMAIL):
        self.client = client
        self.sender = sender

    def send_email(self, to: str, subject: str, text_body: str, html_body: str | None = None) -> dict:
        body = {"Text": {"Data": text_body}}
        if html_body:
            body["Html"] = {"Data": html_body}

        try:
            resp = self.client.send_email(
                Source=self.sender,
                Destination={"ToAddresses": [to]},
                Message={
                    "Subject": {"Data": subject},
                    "Body": body,
                },
            )
        except EMAIL_ERRORS:
            logger.exception(f"SES error when sending '{subject}' to {to}")
            raise

        logger.info(f"Email sent: to={to}, subject='{subject}', Message ID: {resp.get('MessageId')}")
        return resp

    def send_verification_email(self, email: str, otp: str, purpose: Purpose) -> dict:
        purpose_title, purpose_action, color = PURPOSE_TEXT[purpose]

        html_body = env.get_template("email_verification_code.html.jinja").render(
            otp=otp,
            lifetime=OTP_LIFETIME_MINUTES,
            purpose_title=purpose_title,
            purpose_action=purpose_action,
            color=color,
            year=datetime.now(timezone.utc).year,
        )
        text_body = (
            f"Your Todo App verification code is: {otp}. "
            f"This code expires in {OTP_LIFETIME_MINUTES} minutes."
        )

        return self.send_email(
            email, f"Your OTP for Todo App {purpose_title}", text_body, html_body
        )

    def send_todo_list(self, email: str, username: str, todos: list[Todo]) -> dict:
        pending = [todo for todo in todos if not todo.done]
        completed = [todo for todo in todos if todo.done]

        html_body = env.get_template("todo_list.html.jinja").render(
            username=username,
            pending=pending,
            completed=completed,
            website_url=WEBSITE_URL,
            year=datetime.now(timezone.utc).year,
        )

        lines = [format_todo_line(i, todo) for i, todo in enumerate(pending + completed, start=1)]
        text_body = "Here are your todos:\n\n" + "\n".join(lines)
        if WEBSITE_URL:
            text_body += f"\n\nVisit our website to manage your todos: {WEBSITE_URL}"

        return self.send_email(email, "Your Todo List - Todo App", text_body, html_body)


def get_email_service() -> EmailService:
    return EmailService()
