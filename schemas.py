# schemas.py
"""
Document and payload shapes. Field names follow the Firestore documents
(camelCase) so models can be dumped straight into the database.
"""
from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def normalize_skills(skills) -> List[str]:
    """Trim, drop blanks and drop repeats (first spelling wins)."""
    out = []
    seen = set()
    for s in skills or []:
        s = (s or "").strip()
        key = s.lower()
        if not s or key in seen:
            continue
        seen.add(key)
        out.append(s)
    return out


class PortfolioItem(BaseModel):
    id: str
    title: str
    description: str
    imageUrl: Optional[str] = None


class PortfolioItemInput(BaseModel):
    title: str = Field(min_length=3)
    description: str = Field(min_length=10)

    @field_validator("title", "description", mode="before")
    @classmethod
    def _strip(cls, v):
        return v.strip() if isinstance(v, str) else v


class Profile(BaseModel):
    model_config = ConfigDict(extra="ignore")

    uid: str
    name: str
    profilePicture: str = ""
    shortBio: str = ""
    skillsOffered: List[str] = []
    skillsDesired: List[str] = []
    portfolio: List[PortfolioItem] = []


class ProfileUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(default=None, min_length=2)
    shortBio: Optional[str] = Field(default=None, max_length=300)
    profilePicture: Optional[str] = None
    skillsOffered: Optional[List[str]] = None
    skillsDesired: Optional[List[str]] = None

    @field_validator("name", mode="before")
    @classmethod
    def _strip_name(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("skillsOffered", "skillsDesired")
    @classmethod
    def _clean_skills(cls, v):
        return None if v is None else normalize_skills(v)


class SwapRequestStatus(str, Enum):
    pending = "pending"
    accepted = "accepted"
    declined = "declined"
    cancelled = "cancelled"


class PartyProfile(BaseModel):
    name: str


class SwapRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    requesterId: str
    requestedId: str
    requesterProfile: PartyProfile
    requestedProfile: PartyProfile
    skillsOffered: List[str]
    skillsDesired: List[str]
    status: SwapRequestStatus
    createdAt: datetime
    updatedAt: datetime


class SwapRequestInput(BaseModel):
    targetUid: str = Field(min_length=1)
    skillsOffered: List[str] = []
    skillsDesired: List[str] = []

    @field_validator("skillsOffered", "skillsDesired")
    @classmethod
    def _clean_skills(cls, v):
        return normalize_skills(v)


# ---- model flow payloads ----

class FindSkillMatchesInput(BaseModel):
    skillsOffered: List[str]
    skillsDesired: List[str]
    currentUserName: str
    currentUserUid: Optional[str] = None


class MatchedUser(BaseModel):
    model_config = ConfigDict(extra="ignore")

    uid: str
    name: str
    bio: str = ""
    skillsOffered: List[str] = []
    skillsDesired: List[str] = []
    profilePicture: Optional[str] = None
    avatar: str = ""
    aiHint: str = "person smiling"


class FindSkillMatchesOutput(BaseModel):
    matches: List[MatchedUser]


class GenerateUserBioInput(BaseModel):
    name: str
    shortBio: Optional[str] = None
    skillsOffered: List[str] = []
    skillsDesired: List[str] = []


class GenerateUserBioOutput(BaseModel):
    bio: str = Field(min_length=1)

    @field_validator("bio", mode="before")
    @classmethod
    def _strip(cls, v):
        return v.strip() if isinstance(v, str) else v


class GeneratePortfolioImageInput(BaseModel):
    title: str
    description: str
    aiHint: str = "modern, clean"


class GeneratePortfolioImageOutput(BaseModel):
    imageUrl: str
