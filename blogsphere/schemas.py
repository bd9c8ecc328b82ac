"""
Request bodies accepted by the JSON API.

Stored documents are plain dicts (see serializers.py); these models only
validate what clients send.
"""

from typing import Any, List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field


#################
# Users
#################
class UserCreate(BaseModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(..., min_length=1)


class UserLogin(BaseModel):
    email: str
    password: str


class UserDetailUpdate(BaseModel):
    id: Optional[str] = Field(None, description="Target user; defaults to the caller")
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    password: Optional[str] = None
    role: Optional[Literal["User", "Admin"]] = None
    bio: Optional[str] = None
    profile_picture: Optional[str] = None


class UserProfileUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    bio: Optional[str] = None


class PasswordChange(BaseModel):
    old_password: str
    new_password: str = Field(..., min_length=1)


class UserIdsRequest(BaseModel):
    # Entries that are not non-empty strings are skipped by the lookup
    user_ids: List[Any]


#################
# Posts
#################
class PostCreate(BaseModel):
    title: str = Field(..., min_length=1)
    content: str = Field(..., min_length=1)
    tags: List[str] = []
    tagged: List[str] = Field([], description="User IDs tagged in the post")


class PostUpdate(BaseModel):
    title: Optional[str] = None
    content: Optional[str] = None
    tags: Optional[List[str]] = None


#################
# Comments
#################
class CommentCreate(BaseModel):
    comment: str = Field(..., min_length=1)


class ReplyCreate(BaseModel):
    content: str = Field(..., min_length=1)
