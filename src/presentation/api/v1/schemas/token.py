from pydantic import BaseModel, ConfigDict, Field

from src.shared.enums import UserRole


class TokenPayload(BaseModel):
    """JWT token payload schema with agency and user information"""

    sub: str = Field(..., description="User ID (subject)")
    agency_id: str = Field(..., description="Agency ID the user belongs to")
    role: UserRole = Field(default=UserRole.MEMBER, description="Member role within the agency")
    exp: int = Field(..., description="Token expiration timestamp")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "sub": "user_123",
                "agency_id": "agency_abc",
                "role": "manager",
                "exp": 1234567890,
            }
        }
    )
