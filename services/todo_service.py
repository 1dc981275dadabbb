import logging

from fastapi import HTTPException, status
from sqlmodel import Session, select

from auth import TokenPayload
from database import Todo
from models import CreateTodoRequest, MessageResponse
from services import user_service
from services.email_service import EMAIL_ERRORS, EmailService

logger = logging.getLogger("todo_api.todos")


def list_pending_todos(session: Session, user_id: int) -> list[Todo]:
    statement = select(Todo).where(Todo.user_id == user_id, Todo.done == False)  # noqa: E712
    return list(session.exec(statement.order_by(Todo.id)).all())


def list_all_todos(session: Session, user_id: int) -> list[Todo]:
    return list(session.exec(select(Todo).where(Todo.user_id == user_id).order_by(Todo.id)).all())


def create_todo(session: Session, user_id: int, request: CreateTodoRequest) -> Todo:
    title = request.title.strip()
    if not title:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "Title is required")

    todo = Todo(
        title=title,
        description=request.description,
        date=request.date,
        time=request.time,
        done=request.done,
        user_id=user_id,
    )
    session.add(todo)
    session.commit()
    session.refresh(todo)

    logger.info(f"Todo created: id={todo.id}, user={user_id}")
    return todo


def get_owned_todo(session: Session, user_id: int, todo_id: int) -> Todo:
    """
    Look up a todo by id for its owner.

    Items belonging to someone else are reported as missing rather than
    forbidden so ids of other users' items are not confirmed.
    """
    todo = session.get(Todo, todo_id)
    if todo is None or todo.user_id != user_id:
        raise HTTPException(status.HTTP_404_NOT_FOUND, "Todo not found")
    return todo


def mark_todo_done(session: Session, user_id: int, todo_id: int) -> Todo:
    todo = get_owned_todo(session, user_id, todo_id)
    todo.done = True
    session.add(todo)
    session.commit()
    session.refresh(todo)
    return todo


def delete_todo(session: Session, user_id: int, todo_id: int) -> MessageResponse:
    todo = get_owned_todo(session, user_id, todo_id)
    session.delete(todo)
    session.commit()

    logger.info(f"Todo deleted: id={todo_id}, user={user_id}")
    return MessageResponse(message="Todo deleted successfully")


def send_todos_to_email(session: Session, token: TokenPayload, mailer: EmailService) -> MessageResponse:
    todos = list_all_todos(session, token.user_id)
    if not todos:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "No todos to send.")

    user = user_service.get_user_by_id(session, token.user_id)
    username = user.username if user else token.username

    try:
        mailer.send_todo_list(token.email, username, todos)
    except EMAIL_ERRORS:
        logger.error(f"Todo list could not be sent to email={token.email}")
        raise HTTPException(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to send todos to email.")

    return MessageResponse(message="Todos sent to your email!")
