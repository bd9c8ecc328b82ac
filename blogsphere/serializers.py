"""
Turn stored documents into API payloads.

References are stored as id arrays; the populate helpers resolve them at read
time with one ``$in`` query per collection instead of one lookup per id.
"""

from typing import Iterable, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

AUTHOR_FIELDS = ("user_id", "name", "profile_picture")
PRIVATE_FIELDS = ("_id", "password")


def to_public(doc: Optional[dict]):
    """Strip Mongo's _id and the password hash."""
    if not doc:
        return doc
    return {key: value for key, value in doc.items() if key not in PRIVATE_FIELDS}


def public_user(doc: Optional[dict]):
    """Short author card embedded wherever a user reference is populated."""
    if not doc:
        return None
    return {field: doc.get(field, "") for field in AUTHOR_FIELDS}


async def user_cards(db: AsyncIOMotorDatabase, user_ids: Iterable[str]):
    """Map user_id -> author card for every id that still exists."""
    ids = list({user_id for user_id in user_ids if user_id})
    if not ids:
        return {}
    users = await db.users.find({"user_id": {"$in": ids}}, {"password": 0}).to_list(None)
    return {user["user_id"]: public_user(user) for user in users}


async def populate_comments(db: AsyncIOMotorDatabase, comments: List[dict]):
    user_ids = set()
    for comment in comments:
        user_ids.add(comment.get("author"))
        user_ids.update(reply.get("user") for reply in comment.get("replies", []))

    cards = await user_cards(db, user_ids)

    populated = []
    for comment in comments:
        item = to_public(comment)
        item["author"] = cards.get(comment.get("author"))
        item["replies"] = [
            {**reply, "user": cards.get(reply.get("user"))}
            for reply in comment.get("replies", [])
        ]
        populated.append(item)
    return populated


async def populate_comment(db: AsyncIOMotorDatabase, comment: Optional[dict]):
    if not comment:
        return None
    return (await populate_comments(db, [comment]))[0]


async def populate_posts(db: AsyncIOMotorDatabase, posts: List[dict], with_comments: bool = True):
    """Resolve author, tagged users and (optionally) comments of each post.

    Comments keep the order of the post's ``comments`` array; ids whose
    comment no longer exists are dropped. A deleted author becomes None.
    """
    user_ids = set()
    comment_ids = []
    for post in posts:
        user_ids.add(post.get("author"))
        user_ids.update(post.get("tagged", []))
        comment_ids.extend(post.get("comments", []))

    cards = await user_cards(db, user_ids)

    comments_by_id = {}
    if with_comments and comment_ids:
        docs = await db.comments.find({"comment_id": {"$in": comment_ids}}).to_list(None)
        for comment in await populate_comments(db, docs):
            comments_by_id[comment["comment_id"]] = comment

    populated = []
    for post in posts:
        item = to_public(post)
        item["author"] = cards.get(post.get("author"))
        item["tagged"] = [cards[user_id] for user_id in post.get("tagged", []) if user_id in cards]
        if with_comments:
            item["comments"] = [
                comments_by_id[comment_id]
                for comment_id in post.get("comments", [])
                if comment_id in comments_by_id
            ]
        populated.append(item)
    return populated


async def populate_post(db: AsyncIOMotorDatabase, post: Optional[dict], with_comments: bool = True):
    if not post:
        return None
    return (await populate_posts(db, [post], with_comments))[0]
