"""
User management routes.
"""
from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.orm import Session

from ..db import get_db
from ..deps import require_rights
from ..models import User
from ..pagination import PageParams, page_params
from ..schemas import UserCreate, UserOut, UserPage, UserUpdate
from .. import users as user_service

router = APIRouter(prefix="/v1/users", tags=["users"])


@router.post("", response_model=UserOut, status_code=status.HTTP_201_CREATED)
def create_user(
    payload: UserCreate,
    _: User = Depends(require_rights("manageUsers")),
    db: Session = Depends(get_db),
):
    user = user_service.create_user(db, payload)
    return user.to_dict()


@router.get("", response_model=UserPage)
def list_users(
    params: PageParams = Depends(page_params),
    _: User = Depends(require_rights("getUsers")),
    db: Session = Depends(get_db),
):
    """
    List users with pagination, sorting and filtering.

    Query parameters:
        page: 1-indexed page number (default 1)
        limit: results per page (default 10)
        sortBy: comma separated ``field:asc|desc`` keys, e.g. ``role:desc,name:asc``
        filterBy: JSON object of field to substring, e.g. ``{"role":"user"}``
    """
    return user_service.query_users(db, params)


@router.get("/{user_id}", response_model=UserOut)
def get_user(
    user_id: int,
    _: User = Depends(require_rights("getUsers")),
    db: Session = Depends(get_db),
):
    user = user_service.get_user_by_id(db, user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user.to_dict()


@router.patch("/{user_id}", response_model=UserOut)
def update_user(
    user_id: int,
    payload: UserUpdate,
    _: User = Depends(require_rights("manageUsers")),
    db: Session = Depends(get_db),
):
    user = user_service.update_user_by_id(db, user_id, payload)
    return user.to_dict()


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_user(
    user_id: int,
    _: User = Depends(require_rights("manageUsers")),
    db: Session = Depends(get_db),
):
    user_service.delete_user_by_id(db, user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
