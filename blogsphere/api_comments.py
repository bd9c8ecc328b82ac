"""Comment, reply and comment-like endpoints."""

from fastapi import APIRouter, Depends
from motor.motor_asyncio import AsyncIOMotorDatabase

from blogsphere import services
from blogsphere.database import get_db
from blogsphere.schemas import CommentCreate, ReplyCreate
from blogsphere.security import get_current_user_required
from blogsphere.serializers import populate_comment, populate_post

router = APIRouter(tags=["comments"])


@router.post("/comment-post/{post_id}")
async def comment_post(
    post_id: str,
    body: CommentCreate,
    current_user: dict = Depends(get_current_user_required),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    post = await services.add_comment(db, current_user, post_id, body.comment)
    return {"message": "Comment added successfully", "post": await populate_post(db, post)}


@router.delete("/delete-comment/{post_id}/{comment_id}")
async def delete_comment(
    post_id: str,
    comment_id: str,
    current_user: dict = Depends(get_current_user_required),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    post = await services.delete_comment(db, current_user, post_id, comment_id)
    return {"message": "Comment deleted successfully", "post": await populate_post(db, post)}


@router.post("/comment-reply/{comment_id}")
async def comment_reply(
    comment_id: str,
    body: ReplyCreate,
    current_user: dict = Depends(get_current_user_required),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    comment = await services.add_reply(db, current_user, comment_id, body.content)
    return {"message": "Reply added successfully", "comment": await populate_comment(db, comment)}


@router.delete("/delete-reply/{comment_id}/{reply_id}")
async def delete_reply(
    comment_id: str,
    reply_id: str,
    current_user: dict = Depends(get_current_user_required),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    comment = await services.delete_reply(db, current_user, comment_id, reply_id)
    return {"message": "Reply deleted successfully", "comment": await populate_comment(db, comment)}


@router.post("/like-comment/{comment_id}")
async def like_comment(
    comment_id: str,
    current_user: dict = Depends(get_current_user_required),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    comment = await services.like_comment(db, current_user, comment_id)
    return {"message": "Comment liked successfully", "comment": await populate_comment(db, comment)}


@router.post("/unlike-comment/{comment_id}")
async def unlike_comment(
    comment_id: str,
    current_user: dict = Depends(get_current_user_required),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    comment = await services.unlike_comment(db, current_user, comment_id)
    return {"message": "Comment unliked successfully", "comment": await populate_comment(db, comment)}
