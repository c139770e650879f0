import logging
from dataclasses import dataclass

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import ValidationError

from carebook.database import AuthSession, AuthUser, Backend
from carebook.models import Profile, Role, SignInRequest, SignUpRequest, Table

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Auth"])

security = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Session:
    """
    The signed-in user, their profile, and a backend handle acting as them.
    Built once per request and handed to every feature operation.
    """

    user: AuthUser
    profile: Profile
    access_token: str
    db: Backend

    @property
    def user_id(self) -> str:
        return self.user.id

    @property
    def role(self) -> Role:
        return self.profile.role


def get_backend(request: Request) -> Backend:
    return request.app.state.backend


async def load_profile(db: Backend, user_id: str) -> Profile | None:
    rows = await db.select(Table.PROFILES, filters={"id": user_id})
    if not rows:
        return None
    try:
        return Profile.model_validate(rows[0])
    except ValidationError as e:
        logger.warning(f"Profile {user_id} could not be loaded: {e}")
        raise HTTPException(status_code=403, detail="Unknown user type") from e


async def get_session(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> Session:
    if credentials is None:
        raise HTTPException(status_code=401, detail="Not authenticated")

    backend = get_backend(request)
    token = credentials.credentials
    user = await backend.get_user(token)
    db = backend.with_auth(token)

    profile = await load_profile(db, user.id)
    if profile is None:
        raise HTTPException(status_code=401, detail="Profile not found for user")

    return Session(user=user, profile=profile, access_token=token, db=db)


def require_role(role: Role):
    async def dependency(session: Session = Depends(get_session)) -> Session:
        if session.role != role:
            raise HTTPException(
                status_code=403, detail=f"Only {role.value} accounts can do this"
            )
        return session

    return dependency


require_patient = require_role(Role.PATIENT)
require_caregiver = require_role(Role.CAREGIVER)


def _session_response(auth: AuthSession, profile: Profile) -> dict:
    return {
        "access_token": auth.access_token,
        "token_type": "bearer",
        "profile": profile.model_dump(mode="json"),
    }


async def sign_up(backend: Backend, data: SignUpRequest) -> dict:
    auth = await backend.sign_up(
        data.email,
        data.password,
        {"full_name": data.full_name, "role": data.role.value},
    )
    db = backend.with_auth(auth.access_token)
    row = await db.insert(
        Table.PROFILES,
        {"id": auth.user.id, "role": data.role.value, "full_name": data.full_name},
    )
    profile = Profile.model_validate(row)
    logger.info(f"Created {profile.role.value} profile {profile.id}")
    return _session_response(auth, profile)


async def sign_in(backend: Backend, data: SignInRequest) -> dict:
    auth = await backend.sign_in(data.email, data.password)
    profile = await load_profile(backend.with_auth(auth.access_token), auth.user.id)
    if profile is None:
        raise HTTPException(status_code=401, detail="Profile not found for user")
    return _session_response(auth, profile)


@router.post("/sign-up", status_code=201)
async def sign_up_endpoint(data: SignUpRequest, request: Request) -> dict:
    return await sign_up(get_backend(request), data)


@router.post("/sign-in")
async def sign_in_endpoint(data: SignInRequest, request: Request) -> dict:
    return await sign_in(get_backend(request), data)


@router.post("/sign-out")
async def sign_out_endpoint(
    request: Request, session: Session = Depends(get_session)
) -> dict[str, str]:
    await get_backend(request).sign_out(session.access_token)
    logger.info(f"User {session.user_id} signed out")
    return {"status": "signed_out"}
