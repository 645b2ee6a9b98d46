"""
Database Schemas

Pydantic models for the MongoDB collections. The collection name is the
lowercase of the class name:
- Admin -> "admin"
- DailyAffirmation -> "dailyaffirmation"
- OnboardingQuestion -> "onboardingquestion"

Documents are stored with camelCase keys (the mobile app and dashboard read
them as-is), so every model uses a camelCase alias generator. Create bodies
are the collection models themselves; ``...Update`` models carry the fields
an administrator may change with PATCH.
"""
from datetime import datetime, timezone
from typing import Annotated, Any, Dict, List, Literal, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel


def as_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


UtcDatetime = Annotated[datetime, AfterValidator(as_naive_utc)]
RequiredText = Annotated[str, Field(min_length=1)]


class Document(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)

    def changes(self) -> Dict[str, Any]:
        """Only the fields present in the request, keyed as stored."""
        return self.model_dump(by_alias=True, exclude_unset=True)


# ==========================
# PRINCIPALS
# ==========================
class Admin(Document):
    email: EmailStr
    password_hash: str = Field(..., description="Hashed password")
    name: Optional[str] = None


class DeviceSyncStatus(Document):
    last_sync: Optional[UtcDatetime] = None
    device_id: Optional[str] = None
    platform: Optional[str] = None


class Activity(Document):
    last_check_in: Optional[UtcDatetime] = None
    total_check_ins: int = 0
    total_posts: int = 0


class User(Document):
    name: Optional[str] = None
    email: EmailStr
    password_hash: Optional[str] = Field(None, description="Absent for social-only accounts")
    birthdate: Optional[UtcDatetime] = None
    google_id: Optional[str] = None
    facebook_id: Optional[str] = None
    streak: int = 0
    activity: Activity = Field(default_factory=Activity)
    onboarding_answers: List[Dict[str, Any]] = Field(default_factory=list)
    daily_checkin_answers: List[Dict[str, Any]] = Field(default_factory=list)
    device_sync_status: Optional[DeviceSyncStatus] = None
    active: bool = True


class OTP(Document):
    email: str
    otp: str
    type: Literal["admin", "user"]
    expires_at: UtcDatetime
    verified: bool = False


# ==========================
# CONTENT
# ==========================
class Affirmation(Document):
    title: Optional[str] = None
    text: RequiredText
    reflection_prompt: Optional[str] = None
    scheduled_for: Optional[UtcDatetime] = None
    archived: bool = False


class AffirmationUpdate(Document):
    title: Optional[str] = None
    text: Optional[RequiredText] = None
    reflection_prompt: Optional[str] = None
    scheduled_for: Optional[UtcDatetime] = None
    archived: Optional[bool] = None


class DailyAffirmation(Affirmation):
    active: bool = True


class WeeklyAffirmation(Affirmation):
    active: bool = True


class ScheduledAffirmationUpdate(AffirmationUpdate):
    active: Optional[bool] = None


class Quote(Document):
    text: RequiredText
    author: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    active: bool = True


class QuoteUpdate(Document):
    text: Optional[RequiredText] = None
    author: Optional[str] = None
    tags: Optional[List[str]] = None
    active: Optional[bool] = None


class MediaItem(Document):
    title: RequiredText
    type: Literal["video", "audio"]
    url: RequiredText
    thumbnail_url: Optional[str] = None
    duration_seconds: Optional[float] = None
    tags: List[str] = Field(default_factory=list)


class MediaItemUpdate(Document):
    title: Optional[RequiredText] = None
    type: Optional[Literal["video", "audio"]] = None
    url: Optional[RequiredText] = None
    thumbnail_url: Optional[str] = None
    duration_seconds: Optional[float] = None
    tags: Optional[List[str]] = None


ResourceCategory = Literal["journey", "motivation", "lesson"]


class Resource(Document):
    title: RequiredText
    description: Optional[str] = None
    content: RequiredText
    category: ResourceCategory
    image_url: Optional[str] = None
    video_url: Optional[str] = None
    order: Optional[int] = Field(None, description="Appended after the category's last item when omitted")
    active: bool = True
    archived: bool = False


class ResourceUpdate(Document):
    title: Optional[RequiredText] = None
    description: Optional[str] = None
    content: Optional[RequiredText] = None
    category: Optional[ResourceCategory] = None
    image_url: Optional[str] = None
    video_url: Optional[str] = None
    order: Optional[int] = None
    active: Optional[bool] = None
    archived: Optional[bool] = None


class WeeklyLecture(Document):
    title: RequiredText
    image_url: Optional[str] = None
    affirmation_text: RequiredText
    reflection_text: RequiredText
    week_of: UtcDatetime = Field(..., description="Start of the week")
    published: bool = False
    archived: bool = False


class WeeklyLectureUpdate(Document):
    title: Optional[RequiredText] = None
    image_url: Optional[str] = None
    affirmation_text: Optional[RequiredText] = None
    reflection_text: Optional[RequiredText] = None
    week_of: Optional[UtcDatetime] = None
    published: Optional[bool] = None
    archived: Optional[bool] = None


# ==========================
# QUESTIONS
# ==========================
class Option(Document):
    label: RequiredText
    value: RequiredText


OnboardingQuestionType = Literal["single", "multi", "date", "number", "days", "text"]
DailyQuestionType = Literal["single", "multi", "scale", "text"]


class OnboardingQuestion(Document):
    title: RequiredText
    description: Optional[str] = None
    type: OnboardingQuestionType
    options: List[Option] = Field(default_factory=list)
    order: Optional[int] = Field(None, description="Appended after the last question when omitted")
    active: bool = True


class OnboardingQuestionUpdate(Document):
    title: Optional[RequiredText] = None
    description: Optional[str] = None
    type: Optional[OnboardingQuestionType] = None
    options: Optional[List[Option]] = None
    order: Optional[int] = None
    active: Optional[bool] = None


class DailyCheckinQuestion(OnboardingQuestion):
    type: DailyQuestionType


class DailyCheckinQuestionUpdate(OnboardingQuestionUpdate):
    type: Optional[DailyQuestionType] = None


class Reorder(BaseModel):
    order: List[str] = Field(..., description="Question ids in their new order")


# ==========================
# COMMUNITY
# ==========================
PostStatus = Literal["pending", "approved", "rejected"]
Visibility = Literal["public", "private"]


class Post(Document):
    title: RequiredText
    content: RequiredText
    image_url: Optional[str] = None
    visibility: Visibility = "public"


class AdminPost(Post):
    user_id: RequiredText
    status: PostStatus = "approved"


class PostModeration(Document):
    title: Optional[RequiredText] = None
    content: Optional[RequiredText] = None
    image_url: Optional[str] = None
    status: Optional[PostStatus] = None
    published: Optional[bool] = None
    visibility: Optional[Visibility] = None
    flagged: Optional[bool] = None


# ==========================
# NOTIFICATIONS
# ==========================
NotificationStatus = Literal["draft", "scheduled", "sent", "failed"]
NotificationTarget = Literal["all", "users"]


class Notification(Document):
    title: RequiredText
    message: RequiredText
    target: NotificationTarget = "all"
    user_ids: List[str] = Field(default_factory=list)
    scheduled_for: Optional[UtcDatetime] = None
    status: Optional[NotificationStatus] = None


class NotificationUpdate(Document):
    title: Optional[RequiredText] = None
    message: Optional[RequiredText] = None
    target: Optional[NotificationTarget] = None
    user_ids: Optional[List[str]] = None
    scheduled_for: Optional[UtcDatetime] = None
    status: Optional[NotificationStatus] = None


# ==========================
# ACCOUNT REQUESTS
# ==========================
class Credentials(Document):
    email: EmailStr
    password: RequiredText


class Registration(Credentials):
    name: Optional[str] = None


class UserRegistration(Registration):
    birthdate: Optional[UtcDatetime] = None


class AdminLogin(Credentials):
    keep_logged_in: bool = False


class EmailRequest(Document):
    email: EmailStr


class OtpCheck(EmailRequest):
    otp: RequiredText


class PasswordReset(OtpCheck):
    new_password: RequiredText
    confirm_password: RequiredText


class AdminProfileUpdate(Document):
    name: Optional[str] = None


class SocialLogin(Document):
    provider: Literal["google", "facebook"]
    provider_id: RequiredText
    email: Optional[EmailStr] = None
    name: Optional[str] = None


class PlayerRegistration(Document):
    player_id: RequiredText


# Fields a user may never set on their own profile.
RESTRICTED_PROFILE_FIELDS = (
    "_id", "id", "passwordHash", "password", "googleId", "facebookId", "streak", "activity",
    "onboardingAnswers", "dailyCheckinAnswers", "active", "createdAt", "updatedAt",
)


class UserProfileUpdate(Document):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    name: Optional[str] = None
    email: Optional[EmailStr] = None
    birthdate: Optional[UtcDatetime] = None
    device_sync_status: Optional[DeviceSyncStatus] = None

    def restricted(self) -> List[str]:
        return [k for k in (self.model_extra or {}) if k in RESTRICTED_PROFILE_FIELDS]

    def changes(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_unset=True,
                               exclude=set(self.model_extra or {}))


class AdminUserUpdate(Document):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    birthdate: Optional[UtcDatetime] = None
    active: Optional[bool] = None


# ==========================
# ANSWER SUBMISSIONS
# ==========================
class AnswerIn(Document):
    question_id: RequiredText
    answer: Any = None


class OnboardingSubmission(Document):
    answers: List[AnswerIn] = Field(..., min_length=1)


class CheckinSubmission(OnboardingSubmission):
    check_in_date: Optional[UtcDatetime] = None
