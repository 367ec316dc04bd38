from pydantic import BaseModel, EmailStr, Field
from typing import Optional
from datetime import datetime

class UserAuth(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)

class UserCreate(UserAuth):
    full_name: str = Field(min_length=1)
    grade: str = Field(min_length=1)

class UserIdentity(BaseModel):
    id: str
    email: str
    created_at: Optional[datetime] = None

class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user_id: Optional[str] = None
    email: Optional[str] = None
