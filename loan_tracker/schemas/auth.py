from pydantic import BaseModel, Field

class RegisterRequest(BaseModel):
    email: str
    password: str = Field(..., min_length=6)

class LoginRequest(BaseModel):
    email: str
    password: str = Field(..., min_length=1)

class UserResponse(BaseModel):
    id: str
    email: str
    
    class Config:
        from_attributes = True

class RegisterResponse(BaseModel):
    message: str
    userId: str

class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserResponse
