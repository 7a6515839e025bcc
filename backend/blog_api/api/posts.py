"""Public post reads plus owner editing, likes and comments."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from blog_api.api.deps import anonymous_budget, current_principal
from blog_api.api.schemas import CommentOut, MessageOut, PageOut, PostOut
from blog_api.domain.container import get_post_service
from blog_api.domain.models import Principal
from blog_api.domain.posts_service import PostService

router = APIRouter(prefix="/api/posts", tags=["posts"])


class PostCreateIn(BaseModel):
    title: str
    category: str
    description: str
    content: str = ""
    image: Optional[str] = Field(default=None, max_length=2048)


class PostUpdateIn(BaseModel):
    title: Optional[str] = None
    category: Optional[str] = None
    description: Optional[str] = None
    content: Optional[str] = None
    image: Optional[str] = Field(default=None, max_length=2048)


class CommentIn(BaseModel):
    body: str


def get_post_service_dep() -> PostService:
    return get_post_service()


@router.get("", response_model=PageOut[PostOut], dependencies=[Depends(anonymous_budget)])
async def list_posts(
    search: Optional[str] = None,
    category: Optional[str] = None,
    sort_by: Optional[str] = Query(default=None, alias="sortBy"),
    sort_order: Optional[str] = Query(default=None, alias="sortOrder"),
    page: Optional[str] = None,
    limit: Optional[str] = None,
    service: PostService = Depends(get_post_service_dep),
) -> PageOut[PostOut]:
    result = await service.list_posts(
        {
            "search": search,
            "category": category,
            "sortBy": sort_by,
            "sortOrder": sort_order,
            "page": page,
            "limit": limit,
        }
    )
    return PageOut[PostOut].from_page(result, PostOut.from_post)


@router.post("", response_model=PostOut, status_code=status.HTTP_201_CREATED)
async def create_post(
    payload: PostCreateIn,
    principal: Principal = Depends(current_principal),
    service: PostService = Depends(get_post_service_dep),
) -> PostOut:
    post = await service.create_post(
        principal,
        title=payload.title,
        category=payload.category,
        description=payload.description,
        content=payload.content,
        image=payload.image,
    )
    return PostOut.from_post(post)


@router.get("/{post_id}", response_model=PostOut, dependencies=[Depends(anonymous_budget)])
async def read_post(
    post_id: str,
    service: PostService = Depends(get_post_service_dep),
) -> PostOut:
    return PostOut.from_post(await service.read_post(post_id))


@router.patch("/{post_id}", response_model=PostOut)
async def edit_post(
    post_id: str,
    payload: PostUpdateIn,
    principal: Principal = Depends(current_principal),
    service: PostService = Depends(get_post_service_dep),
) -> PostOut:
    changes = payload.model_dump(exclude_unset=True)
    return PostOut.from_post(await service.edit_post(principal, post_id, changes))


@router.delete("/{post_id}", response_model=MessageOut)
async def delete_post(
    post_id: str,
    principal: Principal = Depends(current_principal),
    service: PostService = Depends(get_post_service_dep),
) -> MessageOut:
    await service.delete_post(principal, post_id)
    return MessageOut(message="Post deleted")


@router.post("/{post_id}/like", response_model=PostOut)
async def like_post(
    post_id: str,
    principal: Principal = Depends(current_principal),
    service: PostService = Depends(get_post_service_dep),
) -> PostOut:
    return PostOut.from_post(await service.like_post(principal, post_id))


@router.post("/{post_id}/comments", response_model=CommentOut, status_code=status.HTTP_201_CREATED)
async def add_comment(
    post_id: str,
    payload: CommentIn,
    principal: Principal = Depends(current_principal),
    service: PostService = Depends(get_post_service_dep),
) -> CommentOut:
    return CommentOut.from_comment(await service.add_comment(principal, post_id, payload.body))


@router.delete("/comments/{comment_id}", response_model=MessageOut)
async def delete_comment(
    comment_id: str,
    principal: Principal = Depends(current_principal),
    service: PostService = Depends(get_post_service_dep),
) -> MessageOut:
    await service.delete_comment(principal, comment_id)
    return MessageOut(message="Comment deleted")
