"""Post endpoints: feed, CRUD, likes, bookmarks and tagged posts."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from motor.motor_asyncio import AsyncIOMotorDatabase

from blogsphere import services
from blogsphere.database import get_db
from blogsphere.markdown_utils import convert_markdown
from blogsphere.schemas import PostCreate, PostUpdate
from blogsphere.security import get_current_user, get_current_user_required
from blogsphere.serializers import populate_post, populate_posts, to_public

router = APIRouter(tags=["posts"])


@router.get("/allpost")
async def all_posts(tag: Optional[str] = None, db: AsyncIOMotorDatabase = Depends(get_db)):
    """Every post, newest first, with authors, tagged users and comments resolved"""
    query = {"tags": tag} if tag else {}
    posts = await services.list_posts(db, query)
    return {"message": "All posts fetched successfully", "allPost": await populate_posts(db, posts)}


@router.post("/create-post", status_code=status.HTTP_201_CREATED)
async def create_post(
    body: PostCreate,
    current_user: dict = Depends(get_current_user_required),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    post = await services.create_post(db, current_user, body.title, body.content, body.tags, body.tagged)
    return {"message": "Post created Successfully!", "post": to_public(post)}


@router.delete("/delete-post/{post_id}")
async def delete_post(
    post_id: str,
    current_user: dict = Depends(get_current_user_required),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    await services.delete_post(db, current_user, post_id)
    return {"message": "Post deleted successfully!"}


@router.put("/update-post/{post_id}")
async def update_post(
    post_id: str,
    body: PostUpdate,
    current_user: dict = Depends(get_current_user_required),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    post = await services.update_post(db, current_user, post_id, body.title, body.content, body.tags)
    return {"message": "Post updated successfully!", "post": to_public(post)}


@router.get("/getmypost/{user_id}")
async def user_posts(user_id: str, db: AsyncIOMotorDatabase = Depends(get_db)):
    posts = await services.list_posts(db, {"author": user_id})
    if not posts:
        raise HTTPException(status_code=404, detail="No posts found for this user")
    return {"message": "User's posts fetched successfully", "posts": [to_public(p) for p in posts]}


@router.get("/post/{post_id}")
async def get_post(
    post_id: str,
    current_user: Optional[dict] = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    """Populated post with rendered body; flags tell a signed-in caller what they already did"""
    post = await populate_post(db, await services.get_post_or_404(db, post_id))
    post["content_html"] = convert_markdown(post["content"])
    viewer_id = current_user["user_id"] if current_user else None
    post["is_liked"] = viewer_id in post.get("likes", [])
    post["is_bookmarked"] = viewer_id in post.get("bookmarks", [])
    return {"message": "Post fetched successfully", "post": post}


##########
# Likes & bookmarks
##########
@router.post("/like-post/{post_id}")
async def like_post(
    post_id: str,
    current_user: dict = Depends(get_current_user_required),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    post = await services.like_post(db, current_user, post_id)
    return {"message": "Post liked successfully", "post": to_public(post)}


@router.post("/unlike-post/{post_id}")
async def unlike_post(
    post_id: str,
    current_user: dict = Depends(get_current_user_required),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    post = await services.unlike_post(db, current_user, post_id)
    return {"message": "Post unliked successfully", "post": to_public(post)}


@router.post("/bookmark-post/{post_id}")
async def bookmark_post(
    post_id: str,
    current_user: dict = Depends(get_current_user_required),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    post = await services.bookmark_post(db, current_user, post_id)
    return {"message": "Post bookmarked successfully", "post": to_public(post)}


@router.post("/unbookmark-post/{post_id}")
async def unbookmark_post(
    post_id: str,
    current_user: dict = Depends(get_current_user_required),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    post = await services.unbookmark_post(db, current_user, post_id)
    return {"message": "Post unbookmarked successfully", "post": to_public(post)}


@router.get("/bookmarked-posts/{user_id}")
async def bookmarked_posts(user_id: str, db: AsyncIOMotorDatabase = Depends(get_db)):
    posts = await services.list_posts(db, {"bookmarks": user_id})
    return {"message": "Bookmarked posts fetched successfully", "posts": await populate_posts(db, posts)}


@router.get("/get-tagged-posts/{user_id}")
async def tagged_posts(user_id: str, db: AsyncIOMotorDatabase = Depends(get_db)):
    posts = await services.list_posts(db, {"tagged": user_id})
    if not posts:
        raise HTTPException(status_code=404, detail="No tagged posts found for this user")
    populated = await populate_posts(db, posts, with_comments=False)
    return {"message": "Tagged posts fetched successfully", "posts": populated}
