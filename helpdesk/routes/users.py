"""User endpoints. Passwords are accepted on write and never returned."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from helpdesk.deps import current_user_id, get_users
from helpdesk.models import UserCreate, UserUpdate, UserView
from helpdesk.services.users import UserDirectory, to_view

router = APIRouter(prefix="/api", tags=["users"])


def _not_found() -> HTTPException:
    return HTTPException(status_code=404, detail="User not found")


@router.get("/user", response_model=UserView)
def get_current_user(
    user_id: int = Depends(current_user_id),
    users: UserDirectory = Depends(get_users),
) -> UserView:
    """The requesting principal."""
    user = users.get_user(user_id)
    if user is None:
        raise _not_found()
    return to_view(user)


@router.get("/users", response_model=list[UserView])
def list_users(role: Optional[str] = None, users: UserDirectory = Depends(get_users)) -> list[UserView]:
    return [to_view(u) for u in users.list_users(role=role)]


@router.post("/users", status_code=201, response_model=UserView)
def create_user(payload: UserCreate, users: UserDirectory = Depends(get_users)) -> UserView:
    user = users.create_user(
        username=payload.username,
        password=payload.password,
        email=payload.email,
        full_name=payload.full_name,
        role=payload.role,
    )
    return to_view(user)


@router.get("/users/{user_id}", response_model=UserView)
def get_user(user_id: int, users: UserDirectory = Depends(get_users)) -> UserView:
    user = users.get_user(user_id)
    if user is None:
        raise _not_found()
    return to_view(user)


@router.put("/users/{user_id}", response_model=UserView)
def update_user(user_id: int, payload: UserUpdate, users: UserDirectory = Depends(get_users)) -> UserView:
    user = users.update_user(user_id, payload.model_dump(exclude_unset=True))
    if user is None:
        raise _not_found()
    return to_view(user)


@router.delete("/users/{user_id}")
def delete_user(user_id: int, users: UserDirectory = Depends(get_users)) -> dict:
    """Tickets, comments and ratings of the user are kept with the reference cleared."""
    if not users.delete_user(user_id):
        raise _not_found()
    return {"success": True}
