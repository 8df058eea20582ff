# divein/models/applications.py
from datetime import datetime, timezone
from typing import Literal, Optional
from pydantic import BaseModel, Field
import uuid

ApplicationStatus = Literal["pending", "reviewed"]


class Application(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()), alias="_id")
    opportunity_id: str
    applicant_id: str
    first_name: str
    last_name: str
    email: str
    social_link: Optional[str] = None
    message: Optional[str] = None
    status: ApplicationStatus = "pending"
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    class Config:
        populate_by_name = True
        from_attributes = True
        json_encoders = {
            datetime: lambda v: v.isoformat(),
        }


# Input schema for the apply form (request body).
# Field rules are enforced by the submission service so the first failing
# field is reported on its own.
class ApplicantInput(BaseModel):
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    social_link: Optional[str] = None
    message: Optional[str] = None
