"""
Request body schemas

Validated with parse_body() from pitstop.utils.validators, which turns
pydantic errors into a ValidationException (HTTP 400).
"""
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

MAX_COMMENT_LENGTH = 2000


class LoginBody(BaseModel):
    username: str = Field(min_length=1, max_length=128)
    password: str = Field(min_length=1)


class InspectionItemUpdate(BaseModel):
    key: str = Field(min_length=1, max_length=128)
    value: Optional[str] = None


class UpdateItemsBody(BaseModel):
    items: List[InspectionItemUpdate]


class UpdateStatusBody(BaseModel):
    # NOT_STARTED is only ever set implicitly
    status: Literal['IN_PROGRESS', 'INCOMPLETE', 'PASSED']


class CommentBody(BaseModel):
    comment: str = Field(max_length=MAX_COMMENT_LENGTH)


class TeamFields(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    team_name: str = Field(alias='teamName', min_length=1, max_length=200)
    organization_school: str = Field(default='', alias='organizationSchool', max_length=200)
    city: str = Field(default='', max_length=100)
    country: str = Field(default='', max_length=100)


class AddTeamBody(TeamFields):
    team_number: int = Field(alias='teamNumber', strict=True)


class UpdateTeamBody(TeamFields):
    pass


USERNAME_PATTERN = r'^[A-Za-z0-9_.-]{1,64}$'

Role = Literal['ADMIN', 'TSO', 'HEAD_REFEREE', 'REFEREE', 'INSPECTOR', 'LEAD_INSPECTOR', 'JUDGE']


class RoleAssignmentBody(BaseModel):
    role: Role
    # An event code, or '*' for every event
    event: str = Field(min_length=1, max_length=64, pattern=r'^(\*|[A-Za-z0-9_-]+)$')


class UserAccountFields(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    real_name: Optional[str] = Field(default=None, alias='realName', max_length=128)
    roles: List[RoleAssignmentBody]

    @model_validator(mode='after')
    def _passwords_match(self):
        if self.password != self.password_confirm:
            raise ValueError('Password and confirmation password do not match.')
        return self


class CreateUserBody(UserAccountFields):
    username: str = Field(pattern=USERNAME_PATTERN)
    password: str = Field(min_length=1, max_length=128)
    password_confirm: str = Field(alias='passwordConfirm', min_length=1, max_length=128)


class UpdateUserBody(UserAccountFields):
    # Blank keeps the current password
    password: str = Field(default='', max_length=128)
    password_confirm: str = Field(default='', alias='passwordConfirm', max_length=128)
