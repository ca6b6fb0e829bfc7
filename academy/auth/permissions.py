from fastapi import Depends, Header, HTTPException, Request

from academy.auth.security import decode_access_token

ROLES = ("student", "parent", "instructor", "admin", "sub-admin")
PERMISSIONS = ("manageStudents", "manageCourses", "viewReports")


class CurrentUser:
    """
    Authenticated caller as loaded from storage
    """
    def __init__(self, user_id: str, profile: dict, role: str):
        self.user_id = user_id
        self.full_name = profile.get("full_name")
        self.email = profile.get("email")
        self.role = role
        self.permissions = profile.get("permissions") or []
        self.profile = profile

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    def as_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "full_name": self.full_name,
            "email": self.email,
            "role": self.role,
        }


async def get_current_user(
    request: Request,
    authorization: str = Header(None)
) -> CurrentUser:
    """
    Dependency: validates the bearer token and loads the caller

    Raises:
        401: Missing/invalid/expired token, or the user no longer exists
    """
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="No token provided")

    services = request.app.state.services
    token = authorization.split(" ", 1)[1].strip()
    payload = decode_access_token(token, services.settings.jwt_secret)

    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(status_code=401, detail="Not authorized, token failed")

    profile = await services.db.users.find_one({"user_id": user_id}, {"_id": 0, "password": 0})
    if not profile:
        raise HTTPException(status_code=401, detail="User not found")

    role = profile.get("role") or "student"
    if services.settings.trust_token_role and payload.get("role"):
        role = payload["role"]

    return CurrentUser(user_id, profile, role)


def require_roles(*roles: str):
    """Dependency factory: allow only the listed roles"""

    async def _check(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if user.role not in roles:
            raise HTTPException(
                status_code=403,
                detail=f"User role '{user.role}' is not authorized to access this route"
            )
        return user

    return _check


def require_permission(permission: str):
    """Dependency factory: admin passes, sub-admins need the named permission"""

    async def _check(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if user.role == "admin":
            return user
        if user.role != "sub-admin":
            raise HTTPException(status_code=403, detail="Insufficient role for this operation")
        if permission not in user.permissions:
            raise HTTPException(status_code=403, detail=f"Missing permission: {permission}")
        return user

    return _check


def ensure_owner_or_admin(user: CurrentUser, owner_id: str, detail: str = "Not authorized"):
    if user.role != "admin" and owner_id != user.user_id:
        raise HTTPException(status_code=403, detail=detail)
