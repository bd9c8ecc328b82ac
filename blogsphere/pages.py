##########
# Imports
##########
import logging
import math
from typing import Optional

from fastapi import APIRouter, Depends, Form, HTTPException, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates
from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import ValidationError

from blogsphere import services
from blogsphere.config import ACCESS_TOKEN_COOKIE, POSTS_PER_PAGE, TEMPLATES_DIR
from blogsphere.database import get_db
from blogsphere.markdown_utils import convert_markdown
from blogsphere.schemas import UserCreate
from blogsphere.security import get_cookie_user, is_admin, token_for_user
from blogsphere.serializers import populate_post, populate_posts, to_public

logger = logging.getLogger(__name__)

router = APIRouter(include_in_schema=False)

# Jinja2 template setup
templates = Jinja2Templates(directory=str(TEMPLATES_DIR))


def login_redirect():
    return RedirectResponse("/login", status_code=302)


def session_redirect(url: str, user: dict):
    """Redirect and set the JWT cookie for a freshly authenticated user"""
    response = RedirectResponse(url, status_code=302)
    response.set_cookie(ACCESS_TOKEN_COOKIE, token_for_user(user), httponly=True, samesite="lax")
    return response


def back_to_post(post_id: str):
    return RedirectResponse(f"/posts/{post_id}", status_code=302)


##################
# Home Page
##################
@router.get("/", response_class=HTMLResponse)
async def home(request: Request, page: int = 1, tag: Optional[str] = None, db: AsyncIOMotorDatabase = Depends(get_db)):
    """Newest posts first, paginated"""
    page = max(page, 1)
    query = {"tags": tag} if tag else {}

    posts = await services.list_posts(db, query, skip=(page - 1) * POSTS_PER_PAGE, limit=POSTS_PER_PAGE)
    total_posts = await db.posts.count_documents(query)
    total_pages = math.ceil(total_posts / POSTS_PER_PAGE)

    return templates.TemplateResponse(request, "home.html", {
        "title": "Blogsphere - Home",
        "posts": await populate_posts(db, posts, with_comments=False),
        "tag": tag,
        "current_page": page,
        "total_pages": total_pages,
        "current_user": await get_cookie_user(request, db),
    })


##########
# Authentication
##########
@router.get("/login", response_class=HTMLResponse)
async def login_page(request: Request, db: AsyncIOMotorDatabase = Depends(get_db)):
    if await get_cookie_user(request, db):
        return RedirectResponse("/profile", status_code=302)
    return templates.TemplateResponse(request, "login.html", {"title": "Login", "current_user": None})


@router.post("/login")
async def login(
    request: Request,
    email: str = Form(...),
    password: str = Form(...),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    """Handle login form submission"""
    try:
        user = await services.authenticate_user(db, email, password)
    except HTTPException:
        return templates.TemplateResponse(request, "login.html", {
            "title": "Login",
            "error": "Invalid email or password",
            "current_user": None,
        }, status_code=401)
    return session_redirect("/profile", user)


@router.get("/register", response_class=HTMLResponse)
async def register_page(request: Request, db: AsyncIOMotorDatabase = Depends(get_db)):
    if await get_cookie_user(request, db):
        return RedirectResponse("/profile", status_code=302)
    return templates.TemplateResponse(request, "register.html", {"title": "Register", "current_user": None})


@router.post("/register")
async def register(
    request: Request,
    name: str = Form(...),
    email: str = Form(...),
    password: str = Form(...),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    """Handle sign-up form submission"""
    try:
        form = UserCreate(name=name, email=email, password=password)
        user = await services.register_user(db, form.name, form.email, form.password)
    except ValidationError:
        error, status_code = "Please enter a name, a valid email and a password", 400
    except HTTPException as exc:
        error, status_code = exc.detail, exc.status_code
    else:
        return session_redirect("/profile", user)

    return templates.TemplateResponse(request, "register.html", {
        "title": "Register",
        "error": error,
        "name": name,
        "email": email,
        "current_user": None,
    }, status_code=status_code)


@router.get("/logout")
async def logout():
    """Log out user by deleting cookie"""
    response = RedirectResponse("/", status_code=302)
    response.delete_cookie(ACCESS_TOKEN_COOKIE)
    return response


#############
# Profiles
#############
@router.get("/profile", response_class=HTMLResponse)
async def profile(request: Request, db: AsyncIOMotorDatabase = Depends(get_db)):
    """Own posts and bookmarks"""
    user = await get_cookie_user(request, db)
    if not user:
        return login_redirect()

    posts = await services.list_posts(db, {"author": user["user_id"]})
    bookmarks = await services.list_posts(db, {"bookmarks": user["user_id"]})
    return templates.TemplateResponse(request, "profile.html", {
        "title": "Profile",
        "profile": to_public(user),
        "posts": await populate_posts(db, posts, with_comments=False),
        "bookmarks": await populate_posts(db, bookmarks, with_comments=False),
        "current_user": user,
        "is_own_profile": True,
    })


@router.get("/users/{user_id}", response_class=HTMLResponse)
async def user_page(request: Request, user_id: str, db: AsyncIOMotorDatabase = Depends(get_db)):
    current_user = await get_cookie_user(request, db)
    if current_user and current_user["user_id"] == user_id:
        return RedirectResponse("/profile", status_code=302)

    profile_user = await services.get_user_or_404(db, user_id)
    posts = await services.list_posts(db, {"author": user_id})
    return templates.TemplateResponse(request, "profile.html", {
        "title": profile_user["name"],
        "profile": to_public(profile_user),
        "posts": await populate_posts(db, posts, with_comments=False),
        "bookmarks": [],
        "current_user": current_user,
        "is_own_profile": False,
        "is_following": bool(current_user) and user_id in current_user.get("following", []),
    })


@router.post("/users/{user_id}/follow")
async def toggle_follow(request: Request, user_id: str, db: AsyncIOMotorDatabase = Depends(get_db)):
    user = await get_cookie_user(request, db)
    if not user:
        return login_redirect()

    if user_id in user.get("following", []):
        await services.unfollow_user(db, user, user_id)
    else:
        await services.follow_user(db, user, user_id)
    return RedirectResponse(f"/users/{user_id}", status_code=302)


##################
# Post Management
##################
@router.get("/create", response_class=HTMLResponse)
async def create_post_page(request: Request, db: AsyncIOMotorDatabase = Depends(get_db)):
    user = await get_cookie_user(request, db)
    if not user:
        return login_redirect()
    return templates.TemplateResponse(request, "post_form.html", {
        "title": "Create Post",
        "action": "/create",
        "post": None,
        "tags_str": "",
        "current_user": user,
    })


@router.post("/create")
async def create_post(
    request: Request,
    title: str = Form(...),
    content: str = Form(...),
    tags: str = Form(""),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    """Handle new post submission"""
    user = await get_cookie_user(request, db)
    if not user:
        return login_redirect()

    post = await services.create_post(db, user, title, content, services.parse_tag_string(tags))
    return back_to_post(post["post_id"])


@router.get("/edit/{post_id}", response_class=HTMLResponse)
async def edit_post_page(request: Request, post_id: str, db: AsyncIOMotorDatabase = Depends(get_db)):
    user = await get_cookie_user(request, db)
    if not user:
        return login_redirect()

    post = await services.get_post_or_404(db, post_id)
    if post["author"] != user["user_id"]:
        raise HTTPException(status_code=403, detail="Forbidden - You cannot update someone else's post")

    return templates.TemplateResponse(request, "post_form.html", {
        "title": f"Edit: {post['title']}",
        "action": f"/edit/{post_id}",
        "post": post,
        "tags_str": ", ".join(post.get("tags", [])),
        "current_user": user,
    })


@router.post("/edit/{post_id}")
async def edit_post(
    request: Request,
    post_id: str,
    title: str = Form(...),
    content: str = Form(...),
    tags: str = Form(""),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    user = await get_cookie_user(request, db)
    if not user:
        return login_redirect()

    await services.update_post(db, user, post_id, title, content, services.parse_tag_string(tags))
    return back_to_post(post_id)


@router.post("/delete/{post_id}")
async def delete_post(request: Request, post_id: str, db: AsyncIOMotorDatabase = Depends(get_db)):
    user = await get_cookie_user(request, db)
    if not user:
        return login_redirect()

    await services.delete_post(db, user, post_id)
    return RedirectResponse("/profile", status_code=302)


#####################
# Post Viewing & Interactions
#####################
@router.get("/posts/{post_id}", response_class=HTMLResponse)
async def view_post(request: Request, post_id: str, db: AsyncIOMotorDatabase = Depends(get_db)):
    post = await populate_post(db, await services.get_post_or_404(db, post_id))
    user = await get_cookie_user(request, db)
    user_id = user["user_id"] if user else None

    return templates.TemplateResponse(request, "post.html", {
        "title": post["title"],
        "post": post,
        "content": convert_markdown(post["content"]),
        "liked": user_id in post.get("likes", []),
        "bookmarked": user_id in post.get("bookmarks", []),
        "can_edit": bool(user) and post["author"] is not None and post["author"]["user_id"] == user_id,
        "is_admin": is_admin(user),
        "current_user": user,
    })


@router.post("/posts/{post_id}/like")
async def toggle_like(request: Request, post_id: str, db: AsyncIOMotorDatabase = Depends(get_db)):
    user = await get_cookie_user(request, db)
    if not user:
        return login_redirect()

    post = await services.get_post_or_404(db, post_id)
    if user["user_id"] in post.get("likes", []):
        await services.unlike_post(db, user, post_id)
    else:
        await services.like_post(db, user, post_id)
    return back_to_post(post_id)


@router.post("/posts/{post_id}/bookmark")
async def toggle_bookmark(request: Request, post_id: str, db: AsyncIOMotorDatabase = Depends(get_db)):
    user = await get_cookie_user(request, db)
    if not user:
        return login_redirect()

    post = await services.get_post_or_404(db, post_id)
    if user["user_id"] in post.get("bookmarks", []):
        await services.unbookmark_post(db, user, post_id)
    else:
        await services.bookmark_post(db, user, post_id)
    return back_to_post(post_id)


@router.post("/posts/{post_id}/comment")
async def comment_post(
    request: Request,
    post_id: str,
    comment: str = Form(...),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    user = await get_cookie_user(request, db)
    if not user:
        return login_redirect()

    await services.add_comment(db, user, post_id, comment)
    return back_to_post(post_id)


@router.post("/posts/{post_id}/comments/{comment_id}/delete")
async def delete_comment(request: Request, post_id: str, comment_id: str, db: AsyncIOMotorDatabase = Depends(get_db)):
    user = await get_cookie_user(request, db)
    if not user:
        return login_redirect()

    await services.delete_comment(db, user, post_id, comment_id)
    return back_to_post(post_id)


@router.post("/comments/{comment_id}/reply")
async def reply_comment(
    request: Request,
    comment_id: str,
    content: str = Form(...),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    user = await get_cookie_user(request, db)
    if not user:
        return login_redirect()

    comment = await services.add_reply(db, user, comment_id, content)
    return back_to_post(comment["post"])
