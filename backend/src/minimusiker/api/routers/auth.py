"""Login and logout for every portal role.

Each successful login sets its role's session cookie; logout clears them all.
"""

from fastapi import APIRouter, BackgroundTasks, Depends, Response

from minimusiker.api.deps import clear_session_cookies, get_auth_service, set_session_cookie
from minimusiker.api.schemas import EmailRequest, PasswordLoginRequest
from minimusiker.services.auth import MAGIC_LINK_SENT_MESSAGE, AuthService

router = APIRouter()


@router.post("/teacher-magic-link")
async def request_teacher_magic_link(
    body: EmailRequest,
    background_tasks: BackgroundTasks,
    auth: AuthService = Depends(get_auth_service),
):
    await auth.request_magic_link(body.email, background_tasks)
    return {"success": True, "message": MAGIC_LINK_SENT_MESSAGE}


@router.get("/teacher-verify")
async def verify_teacher_magic_link(
    token: str,
    response: Response,
    auth: AuthService = Depends(get_auth_service),
):
    session = await auth.verify_magic_link(token)
    set_session_cookie(response, session)
    return {
        "success": True,
        "teacher": {
            "id": session.teacher_id,
            "email": session.email,
            "name": session.name,
            "schoolName": session.school_name,
        },
    }


@router.post("/parent-login")
async def parent_login(
    body: EmailRequest,
    response: Response,
    auth: AuthService = Depends(get_auth_service),
):
    session = await auth.parent_login(body.email)
    set_session_cookie(response, session)
    return {
        "success": True,
        "parent": {
            "parentId": session.parent_id,
            "email": session.email,
            "firstName": session.first_name,
            "eventId": session.event_id,
            "schoolName": session.school_name,
            "children": [
                {"childName": c.child_name, "eventId": c.event_id, "classId": c.class_id}
                for c in session.children
            ],
        },
    }


@router.post("/admin-login")
async def admin_login(
    body: PasswordLoginRequest,
    response: Response,
    auth: AuthService = Depends(get_auth_service),
):
    session = auth.admin_login(body.email, body.password)
    set_session_cookie(response, session)
    return {"success": True, "admin": {"email": session.email, "name": session.name}}


@router.post("/staff-login")
async def staff_login(
    body: PasswordLoginRequest,
    response: Response,
    auth: AuthService = Depends(get_auth_service),
):
    session = await auth.staff_login(body.email, body.password)
    set_session_cookie(response, session)
    return {
        "success": True,
        "staff": {"id": session.staff_id, "email": session.email, "name": session.name},
    }


@router.post("/engineer-login")
async def engineer_login(
    body: PasswordLoginRequest,
    response: Response,
    auth: AuthService = Depends(get_auth_service),
):
    session = await auth.engineer_login(body.email, body.password)
    set_session_cookie(response, session)
    return {
        "success": True,
        "engineer": {"id": session.engineer_id, "email": session.email, "name": session.name},
    }


@router.post("/logout")
async def logout(response: Response):
    clear_session_cookies(response)
    return {"success": True}
