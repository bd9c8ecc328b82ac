"""
Operations shared by the JSON API and the HTML pages.

Functions take the database and the acting user explicitly and raise
HTTPException for client errors, so both route layers surface the same
statuses and messages.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from fastapi import HTTPException
from motor.motor_asyncio import AsyncIOMotorCollection, AsyncIOMotorDatabase
from pymongo import DESCENDING, ReturnDocument

from blogsphere.config import ADMIN_EMAILS, ROLE_ADMIN, ROLE_USER
from blogsphere.security import hash_password, is_admin, verify_password

logger = logging.getLogger(__name__)


def utcnow():
    return datetime.now(timezone.utc)


def new_id():
    return str(uuid.uuid4())


def clean_tags(tags: Iterable[str]):
    """Strip, drop empties and de-duplicate while keeping order"""
    seen = []
    for tag in tags:
        tag = (tag or "").strip()
        if tag and tag not in seen:
            seen.append(tag)
    return seen


def parse_tag_string(tags: str):
    return clean_tags(tags.split(","))


##########
# Reference arrays
##########
async def add_member(
    collection: AsyncIOMotorCollection,
    key_field: str,
    key: str,
    field: str,
    user_id: str,
    not_found: str,
    already: str,
):
    """Add user_id to a reference array unless it is already there.

    The membership check and the push happen in one conditional update so
    concurrent requests cannot store the same id twice.
    """
    result = await collection.update_one(
        {key_field: key, field: {"$ne": user_id}},
        {"$addToSet": {field: user_id}},
    )
    if result.matched_count == 0:
        if not await collection.find_one({key_field: key}, {"_id": 1}):
            raise HTTPException(status_code=404, detail=not_found)
        raise HTTPException(status_code=400, detail=already)


async def remove_member(
    collection: AsyncIOMotorCollection,
    key_field: str,
    key: str,
    field: str,
    user_id: str,
    not_found: str,
    missing: str,
):
    """Pull user_id from a reference array; 400 when it was not a member"""
    result = await collection.update_one(
        {key_field: key, field: user_id},
        {"$pull": {field: user_id}},
    )
    if result.matched_count == 0:
        if not await collection.find_one({key_field: key}, {"_id": 1}):
            raise HTTPException(status_code=404, detail=not_found)
        raise HTTPException(status_code=400, detail=missing)


##########
# Users
##########
async def get_user_or_404(db: AsyncIOMotorDatabase, user_id: str):
    user = await db.users.find_one({"user_id": user_id})
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


async def register_user(db: AsyncIOMotorDatabase, name: str, email: str, password: str):
    """Create a user account; email addresses are unique"""
    email = email.strip().lower()
    if await db.users.find_one({"email": email}):
        raise HTTPException(status_code=400, detail="User already exists with this email")

    now = utcnow()
    user_doc = {
        "user_id": new_id(),
        "name": name.strip(),
        "email": email,
        "password": hash_password(password),
        "role": ROLE_ADMIN if email in ADMIN_EMAILS else ROLE_USER,
        "bio": "",
        "profile_picture": "",
        "posts": [],
        "followers": [],
        "following": [],
        "tagged": [],
        "created_at": now,
        "updated_at": now,
    }
    await db.users.insert_one(user_doc)
    logger.info("Registered user %s (%s)", user_doc["user_id"], user_doc["role"])
    return user_doc


async def authenticate_user(db: AsyncIOMotorDatabase, email: str, password: str):
    user = await db.users.find_one({"email": email.strip().lower()})
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    if not verify_password(password, user.get("password", "")):
        logger.warning("Failed login for user %s", user["user_id"])
        raise HTTPException(status_code=401, detail="Invalid password")
    return user


async def update_user(db: AsyncIOMotorDatabase, user_id: str, updates: dict):
    """Apply field updates to a user and return the new document"""
    if "email" in updates:
        updates["email"] = updates["email"].strip().lower()
        clash = await db.users.find_one({"email": updates["email"], "user_id": {"$ne": user_id}})
        if clash:
            raise HTTPException(status_code=400, detail="Email already in use")
    if "password" in updates:
        updates["password"] = hash_password(updates["password"])

    updates["updated_at"] = utcnow()
    user = await db.users.find_one_and_update(
        {"user_id": user_id},
        {"$set": updates},
        return_document=ReturnDocument.AFTER,
    )
    if not user:
        raise HTTPException(status_code=404, detail="User not Found")
    logger.info("Updated user %s fields %s", user_id, sorted(k for k in updates if k != "updated_at"))
    return user


async def change_password(db: AsyncIOMotorDatabase, user: dict, old_password: str, new_password: str):
    if not verify_password(old_password, user.get("password", "")):
        raise HTTPException(status_code=401, detail="Invalid current password")
    await db.users.update_one(
        {"user_id": user["user_id"]},
        {"$set": {"password": hash_password(new_password), "updated_at": utcnow()}},
    )
    logger.info("Password changed for user %s", user["user_id"])


async def get_users_by_ids(db: AsyncIOMotorDatabase, user_ids: List):
    valid_ids = [user_id for user_id in user_ids if user_id and isinstance(user_id, str)]
    if not valid_ids:
        return []
    return await db.users.find(
        {"user_id": {"$in": valid_ids}},
        {"_id": 0, "user_id": 1, "name": 1, "email": 1, "profile_picture": 1},
    ).to_list(None)


async def follow_user(db: AsyncIOMotorDatabase, current_user: dict, target_id: str):
    """Follow target_id; returns (caller's following, target's followers)"""
    current_id = current_user["user_id"]
    if current_id == target_id:
        raise HTTPException(status_code=400, detail="You cannot follow yourself")
    await get_user_or_404(db, target_id)

    await add_member(
        db.users, "user_id", current_id, "following", target_id,
        "User not found", "Already following this user",
    )
    await db.users.update_one({"user_id": target_id}, {"$addToSet": {"followers": current_id}})
    logger.info("User %s followed %s", current_id, target_id)
    return await _follow_state(db, current_id, target_id)


async def unfollow_user(db: AsyncIOMotorDatabase, current_user: dict, target_id: str):
    current_id = current_user["user_id"]
    if current_id == target_id:
        raise HTTPException(status_code=400, detail="You cannot unfollow yourself")
    await get_user_or_404(db, target_id)

    await remove_member(
        db.users, "user_id", current_id, "following", target_id,
        "User not found", "Not following this user",
    )
    await db.users.update_one({"user_id": target_id}, {"$pull": {"followers": current_id}})
    logger.info("User %s unfollowed %s", current_id, target_id)
    return await _follow_state(db, current_id, target_id)


async def _follow_state(db: AsyncIOMotorDatabase, current_id: str, target_id: str):
    current = await db.users.find_one({"user_id": current_id}, {"following": 1})
    target = await db.users.find_one({"user_id": target_id}, {"followers": 1})
    return current.get("following", []), target.get("followers", [])


##########
# Posts
##########
async def get_post_or_404(db: AsyncIOMotorDatabase, post_id: str):
    post = await db.posts.find_one({"post_id": post_id})
    if not post:
        raise HTTPException(status_code=404, detail="Post not found")
    return post


async def list_posts(db: AsyncIOMotorDatabase, query: Optional[dict] = None, skip: int = 0, limit: int = 0):
    """Posts matching query, newest first; limit=0 means no limit"""
    cursor = db.posts.find(query or {}).sort("created_at", DESCENDING)
    if skip:
        cursor = cursor.skip(skip)
    if limit:
        cursor = cursor.limit(limit)
    return await cursor.to_list(None)


async def existing_user_ids(db: AsyncIOMotorDatabase, user_ids: Iterable[str]):
    """Keep the ids (in order, once each) that belong to real users"""
    wanted = []
    for user_id in user_ids:
        if user_id and user_id not in wanted:
            wanted.append(user_id)
    if not wanted:
        return []
    found = await db.users.find({"user_id": {"$in": wanted}}, {"user_id": 1}).to_list(None)
    found_ids = {user["user_id"] for user in found}
    return [user_id for user_id in wanted if user_id in found_ids]


async def create_post(
    db: AsyncIOMotorDatabase,
    author: dict,
    title: str,
    content: str,
    tags: Iterable[str] = (),
    tagged: Iterable[str] = (),
):
    tagged_ids = await existing_user_ids(db, tagged)

    now = utcnow()
    post_doc = {
        "post_id": new_id(),
        "title": title.strip(),
        "content": content,
        "author": author["user_id"],
        "tags": clean_tags(tags),
        "likes": [],
        "bookmarks": [],
        "tagged": tagged_ids,
        "comments": [],
        "created_at": now,
        "updated_at": now,
    }
    await db.posts.insert_one(post_doc)

    await db.users.update_one({"user_id": author["user_id"]}, {"$push": {"posts": post_doc["post_id"]}})
    if tagged_ids:
        await db.users.update_many(
            {"user_id": {"$in": tagged_ids}},
            {"$addToSet": {"tagged": post_doc["post_id"]}},
        )

    logger.info("User %s created post %s", author["user_id"], post_doc["post_id"])
    return post_doc


async def update_post(
    db: AsyncIOMotorDatabase,
    user: dict,
    post_id: str,
    title: Optional[str] = None,
    content: Optional[str] = None,
    tags: Optional[Iterable[str]] = None,
):
    """Edit a post; only its author may. Empty title/content keep the old value."""
    post = await get_post_or_404(db, post_id)
    if post["author"] != user["user_id"]:
        raise HTTPException(status_code=403, detail="Forbidden - You cannot update someone else's post")

    update_data = {
        "title": (title or "").strip() or post["title"],
        "content": content or post["content"],
        "updated_at": utcnow(),
    }
    if tags is not None:
        update_data["tags"] = clean_tags(tags)

    post = await db.posts.find_one_and_update(
        {"post_id": post_id},
        {"$set": update_data},
        return_document=ReturnDocument.AFTER,
    )
    logger.info("User %s updated post %s", user["user_id"], post_id)
    return post


async def delete_post(db: AsyncIOMotorDatabase, user: dict, post_id: str):
    """Delete a post and related data"""
    post = await get_post_or_404(db, post_id)
    if post["author"] != user["user_id"] and not is_admin(user):
        raise HTTPException(status_code=403, detail="Forbidden - You cannot delete someone else's post")

    await db.posts.delete_one({"post_id": post_id})
    await db.comments.delete_many({"post": post_id})
    await db.users.update_one({"user_id": post["author"]}, {"$pull": {"posts": post_id}})
    await db.users.update_many({"tagged": post_id}, {"$pull": {"tagged": post_id}})
    logger.info("User %s deleted post %s", user["user_id"], post_id)


async def like_post(db: AsyncIOMotorDatabase, user: dict, post_id: str):
    await add_member(db.posts, "post_id", post_id, "likes", user["user_id"],
                     "Post not found", "Post already liked by user")
    return await get_post_or_404(db, post_id)


async def unlike_post(db: AsyncIOMotorDatabase, user: dict, post_id: str):
    await remove_member(db.posts, "post_id", post_id, "likes", user["user_id"],
                        "Post not found", "Post not liked by user")
    return await get_post_or_404(db, post_id)


async def bookmark_post(db: AsyncIOMotorDatabase, user: dict, post_id: str):
    await add_member(db.posts, "post_id", post_id, "bookmarks", user["user_id"],
                     "Post not found", "Post already bookmarked by user")
    return await get_post_or_404(db, post_id)


async def unbookmark_post(db: AsyncIOMotorDatabase, user: dict, post_id: str):
    await remove_member(db.posts, "post_id", post_id, "bookmarks", user["user_id"],
                        "Post not found", "Post not bookmarked by user")
    return await get_post_or_404(db, post_id)


##########
# Comments
##########
async def get_comment_or_404(db: AsyncIOMotorDatabase, comment_id: str):
    comment = await db.comments.find_one({"comment_id": comment_id})
    if not comment:
        raise HTTPException(status_code=404, detail="Comment not found")
    return comment


async def add_comment(db: AsyncIOMotorDatabase, user: dict, post_id: str, text: str):
    """Create a comment and append it to the post; returns the updated post"""
    await get_post_or_404(db, post_id)
    text = text.strip()
    if not text:
        raise HTTPException(status_code=400, detail="Comment cannot be empty")

    now = utcnow()
    comment_doc = {
        "comment_id": new_id(),
        "post": post_id,
        "author": user["user_id"],
        "content": text,
        "replies": [],
        "likes": [],
        "created_at": now,
        "updated_at": now,
    }
    await db.comments.insert_one(comment_doc)
    await db.posts.update_one({"post_id": post_id}, {"$push": {"comments": comment_doc["comment_id"]}})
    logger.info("User %s commented on post %s", user["user_id"], post_id)
    return await get_post_or_404(db, post_id)


async def delete_comment(db: AsyncIOMotorDatabase, user: dict, post_id: str, comment_id: str):
    """Comment author, post author and admins may delete; returns the updated post"""
    post = await get_post_or_404(db, post_id)
    comment = await db.comments.find_one({"comment_id": comment_id, "post": post_id})
    if not comment:
        raise HTTPException(status_code=404, detail="Comment not found")

    if user["user_id"] not in (comment["author"], post["author"]) and not is_admin(user):
        raise HTTPException(status_code=403, detail="Forbidden - You cannot delete this comment")

    await db.comments.delete_one({"comment_id": comment_id})
    await db.posts.update_one({"post_id": post_id}, {"$pull": {"comments": comment_id}})
    logger.info("User %s deleted comment %s", user["user_id"], comment_id)
    return await get_post_or_404(db, post_id)


async def add_reply(db: AsyncIOMotorDatabase, user: dict, comment_id: str, content: str):
    await get_comment_or_404(db, comment_id)
    content = content.strip()
    if not content:
        raise HTTPException(status_code=400, detail="Reply cannot be empty")

    reply = {
        "reply_id": new_id(),
        "user": user["user_id"],
        "username": user.get("name", ""),
        "content": content,
        "created_at": utcnow(),
    }
    await db.comments.update_one(
        {"comment_id": comment_id},
        {"$push": {"replies": reply}, "$set": {"updated_at": utcnow()}},
    )
    logger.info("User %s replied to comment %s", user["user_id"], comment_id)
    return await get_comment_or_404(db, comment_id)


async def delete_reply(db: AsyncIOMotorDatabase, user: dict, comment_id: str, reply_id: str):
    comment = await get_comment_or_404(db, comment_id)
    reply = next((r for r in comment.get("replies", []) if r.get("reply_id") == reply_id), None)
    if not reply:
        raise HTTPException(status_code=404, detail="Reply not found")

    if user["user_id"] not in (reply.get("user"), comment["author"]) and not is_admin(user):
        raise HTTPException(status_code=403, detail="Forbidden - You cannot delete this reply")

    await db.comments.update_one(
        {"comment_id": comment_id},
        {"$pull": {"replies": {"reply_id": reply_id}}},
    )
    logger.info("User %s deleted reply %s", user["user_id"], reply_id)
    return await get_comment_or_404(db, comment_id)


async def like_comment(db: AsyncIOMotorDatabase, user: dict, comment_id: str):
    await add_member(db.comments, "comment_id", comment_id, "likes", user["user_id"],
                     "Comment not found", "Comment already liked by user")
    return await get_comment_or_404(db, comment_id)


async def unlike_comment(db: AsyncIOMotorDatabase, user: dict, comment_id: str):
    await remove_member(db.comments, "comment_id", comment_id, "likes", user["user_id"],
                        "Comment not found", "Comment not liked by user")
    return await get_comment_or_404(db, comment_id)
