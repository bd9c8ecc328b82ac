"""Account, profile and follow endpoints."""

from fastapi import APIRouter, Depends, HTTPException, status
from motor.motor_asyncio import AsyncIOMotorDatabase

from blogsphere import services
from blogsphere.database import get_db
from blogsphere.schemas import (
    PasswordChange,
    UserCreate,
    UserDetailUpdate,
    UserIdsRequest,
    UserLogin,
    UserProfileUpdate,
)
from blogsphere.security import get_current_user_required, require_admin, token_for_user
from blogsphere.serializers import to_public

router = APIRouter(tags=["users"])


##########
# Authentication
##########
@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(body: UserCreate, db: AsyncIOMotorDatabase = Depends(get_db)):
    user = await services.register_user(db, body.name, body.email, body.password)
    return {
        "message": "User registered successfully",
        "token": token_for_user(user),
        "user": to_public(user),
    }


@router.post("/login")
async def login(body: UserLogin, db: AsyncIOMotorDatabase = Depends(get_db)):
    user = await services.authenticate_user(db, body.email, body.password)
    return {"message": "Login successful", "token": token_for_user(user), "user": to_public(user)}


@router.get("/get-currentuser-details")
async def current_user_details(current_user: dict = Depends(get_current_user_required)):
    return {"user": to_public(current_user)}


##########
# Profile updates
##########
@router.post("/update-user-detail")
async def update_user_detail(
    body: UserDetailUpdate,
    current_user: dict = Depends(get_current_user_required),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    """Update the caller, or any user when the caller is an admin.

    Blank fields are ignored. Role changes are admin-only.
    """
    target_id = body.id or current_user["user_id"]
    if target_id != current_user["user_id"]:
        require_admin(current_user, "Forbidden - You can only update your own details")

    updates = {
        field: value
        for field, value in body.model_dump(exclude={"id"}).items()
        if value
    }
    if "role" in updates:
        require_admin(current_user, "Forbidden - Only admins can change roles")

    user = await services.update_user(db, target_id, updates)
    return {"message": "User Updated successfully!", "user": to_public(user)}


@router.put("/update-user/{user_id}")
async def update_user_profile(
    user_id: str,
    body: UserProfileUpdate,
    current_user: dict = Depends(get_current_user_required),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    if current_user["user_id"] != user_id:
        raise HTTPException(status_code=403, detail="Unauthorized: You can only update your own profile")

    # bio may be cleared, name and email may not
    updates = {
        field: value
        for field, value in body.model_dump().items()
        if value or (field == "bio" and value is not None)
    }
    user = await services.update_user(db, user_id, updates)
    return {"message": "Profile updated successfully", "user": to_public(user)}


@router.post("/change-password")
async def change_password(
    body: PasswordChange,
    current_user: dict = Depends(get_current_user_required),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    await services.change_password(db, current_user, body.old_password, body.new_password)
    return {"message": "Password updated successfully!"}


##########
# Lookup
##########
@router.post("/get-users")
async def get_users(body: UserIdsRequest, db: AsyncIOMotorDatabase = Depends(get_db)):
    users = await services.get_users_by_ids(db, body.user_ids)
    return {"message": "Users fetched successfully", "users": users}


@router.get("/user/{user_id}")
async def user_profile(user_id: str, db: AsyncIOMotorDatabase = Depends(get_db)):
    user = to_public(await services.get_user_or_404(db, user_id))
    user.pop("email", None)
    user["followers_count"] = len(user.get("followers", []))
    user["following_count"] = len(user.get("following", []))
    user["posts_count"] = len(user.get("posts", []))
    return {"message": "User fetched successfully", "user": user}


##########
# Follow
##########
@router.post("/follow-user/{user_id}")
async def follow_user(
    user_id: str,
    current_user: dict = Depends(get_current_user_required),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    following, followers = await services.follow_user(db, current_user, user_id)
    return {"message": "Successfully followed the user", "following": following, "followers": followers}


@router.post("/unfollow-user/{user_id}")
async def unfollow_user(
    user_id: str,
    current_user: dict = Depends(get_current_user_required),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    following, followers = await services.unfollow_user(db, current_user, user_id)
    return {"message": "Successfully unfollowed the user", "following": following, "followers": followers}
