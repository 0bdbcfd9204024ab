from typing import Literal

from fastapi import APIRouter, Depends, status
from fastapi.responses import Response
from pydantic import BaseModel, field_validator

from medibook.auth.dependencies import get_gateway, get_session, get_token
from medibook.auth.identity import IdentityGateway
from medibook.auth.session import CurrentUser, SessionContext
from medibook.core.errors import LoginRequired
from medibook.records import Role

router = APIRouter(tags=['auth'])

HOME_PATHS = {
    'patient': '/dashboard',
    'doctor': '/doctor/dashboard',
    'admin': '/admin/dashboard',
}
ONBOARDING_PATH = '/doctor/onboarding'


def _normalize_email(value: str) -> str:
    normalized = value.strip().lower()
    if not normalized:
        raise ValueError('Email is required.')
    return normalized


class RegisterRequest(BaseModel):
    name: str
    email: str
    password: str
    role: Literal['patient', 'doctor'] = 'patient'

    @field_validator('name')
    @classmethod
    def validate_name(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Name is required.')
        return normalized

    @field_validator('email')
    @classmethod
    def validate_email(cls, value: str) -> str:
        return _normalize_email(value)


class LoginRequest(BaseModel):
    email: str
    password: str
    role: Role | None = None

    @field_validator('email')
    @classmethod
    def validate_email(cls, value: str) -> str:
        return _normalize_email(value)


class AuthResponse(BaseModel):
    access_token: str
    token_type: str = 'bearer'
    user: CurrentUser
    redirect_to: str


class FormField(BaseModel):
    name: str
    type: str
    required: bool = True


class AuthPageResponse(BaseModel):
    page: str
    action: str
    fields: list[FormField]
    roles: list[str]
    alternate: str | None = None


EMAIL_FIELD = FormField(name='email', type='email')
PASSWORD_FIELD = FormField(name='password', type='password')

LOGIN_PAGE = AuthPageResponse(
    page='login',
    action='/auth/login',
    fields=[EMAIL_FIELD, PASSWORD_FIELD, FormField(name='role', type='select', required=False)],
    roles=['patient', 'doctor'],
    alternate='/auth/register',
)
REGISTER_PAGE = AuthPageResponse(
    page='register',
    action='/auth/register',
    fields=[FormField(name='name', type='text'), EMAIL_FIELD, PASSWORD_FIELD, FormField(name='role', type='select')],
    roles=['patient', 'doctor'],
    alternate='/auth/login',
)
ADMIN_LOGIN_PAGE = AuthPageResponse(
    page='admin-login',
    action='/admin/login',
    fields=[EMAIL_FIELD, PASSWORD_FIELD],
    roles=['admin'],
)


@router.get('/auth/login', response_model=AuthPageResponse)
def login_page():
    return LOGIN_PAGE


@router.get('/auth/register', response_model=AuthPageResponse)
def register_page():
    return REGISTER_PAGE


@router.get('/admin/login', response_model=AuthPageResponse)
def admin_login_page():
    return ADMIN_LOGIN_PAGE


@router.post('/auth/register', response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register(data: RegisterRequest, gateway: IdentityGateway = Depends(get_gateway)):
    user, token = gateway.register(data.name, data.email, data.password, data.role)
    redirect_to = ONBOARDING_PATH if user.role == 'doctor' else HOME_PATHS[user.role]
    return AuthResponse(access_token=token, user=user, redirect_to=redirect_to)


@router.post('/auth/login', response_model=AuthResponse)
def login(data: LoginRequest, gateway: IdentityGateway = Depends(get_gateway)):
    user, token = gateway.login(data.email, data.password, data.role)
    return AuthResponse(access_token=token, user=user, redirect_to=HOME_PATHS[user.role])


@router.post('/admin/login', response_model=AuthResponse)
def admin_login(data: LoginRequest, gateway: IdentityGateway = Depends(get_gateway)):
    user, token = gateway.login(data.email, data.password, role='admin')
    return AuthResponse(access_token=token, user=user, redirect_to=HOME_PATHS['admin'])


@router.post('/auth/logout', status_code=status.HTTP_204_NO_CONTENT)
def logout(
    token: str | None = Depends(get_token),
    gateway: IdentityGateway = Depends(get_gateway),
):
    gateway.logout(token)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get('/auth/me', response_model=CurrentUser)
def me(session: SessionContext = Depends(get_session)):
    if session.user is None:
        raise LoginRequired()
    return session.user
