"""
Configuration management using Pydantic models loaded from YAML.
"""

import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import pendulum
import yaml
from pendulum import DateTime
from pydantic import BaseModel, Field, field_validator, model_validator

from .domain.models import (
    Assignee,
    AssigneeRole,
    AvailabilityType,
    Booking,
    DurationOption,
    Event,
    EventConfig,
    RoutingFallback,
    User,
)
from .domain.schedule import normalize_schedule
from .domain.slot_calculator import to_utc

CONFIG_FILE_NAME = "slotrouter.yaml"
API_KEY_ENV_VAR = "OPENAI_API_KEY"


def _validate_timezone(value: str) -> str:
    try:
        pendulum.timezone(value)
    except (ValueError, KeyError) as exc:
        raise ValueError(f"Unknown timezone: {value}") from exc
    return value


class DefaultsConfig(BaseModel):
    """Default settings for slot queries."""
    timezone: str = "UTC"
    duration_minutes: int = 30

    @field_validator("duration_minutes")
    @classmethod
    def validate_duration(cls, value: int) -> int:
        """Ensure meeting duration is positive."""
        if value <= 0:
            raise ValueError("duration_minutes must be greater than zero")
        return value

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        return _validate_timezone(value)


class AIRoutingConfig(BaseModel):
    """Settings of the AI decision service."""
    api_key: Optional[str] = None
    model: str = "gpt-4o-mini"
    temperature: float = Field(default=0.3, ge=0, le=2)
    max_tokens: int = Field(default=200, gt=0)
    timeout_seconds: float = Field(default=10.0, gt=0)
    endpoint: str = "https://api.openai.com/v1/chat/completions"

    def resolve_api_key(self) -> Optional[str]:
        """Configured key, or the ``OPENAI_API_KEY`` environment variable."""
        return self.api_key or os.environ.get(API_KEY_ENV_VAR) or None

    def is_configured(self) -> bool:
        return self.resolve_api_key() is not None


class UserConfig(BaseModel):
    """A user who can create events or host bookings."""
    id: int
    name: str
    email: str = ""

    def to_user(self) -> User:
        return User(id=self.id, name=self.name, email=self.email.lower())


class AssigneeConfig(BaseModel):
    user: int
    role: AssigneeRole = AssigneeRole.HOST


class DurationConfig(BaseModel):
    minutes: int = Field(gt=0)
    label: str = ""


class EventDefinition(BaseModel):
    """
    An event with its weekly schedule, booking rules and host assignments.

    ``schedule`` is the raw weekday mapping; it is normalized leniently when
    the event is built, so malformed day entries fall back to defaults.
    """
    id: int
    name: str
    creator: Optional[int] = None
    schedule: Dict[str, Any] = Field(default_factory=dict)
    durations: List[DurationConfig] = Field(default_factory=list)
    buffer_minutes: int = Field(default=0, ge=0)
    advance_notice_minutes: int = Field(default=0, ge=0)
    availability_type: AvailabilityType = AvailabilityType.ONE_HOST_AVAILABLE
    routing_enabled: bool = False
    routing_instructions: Optional[str] = None
    routing_fallback: RoutingFallback = RoutingFallback.ROUND_ROBIN
    assignees: List[AssigneeConfig] = Field(default_factory=list)

    def referenced_user_ids(self) -> List[int]:
        ids = [a.user for a in self.assignees]
        if self.creator is not None:
            ids.append(self.creator)
        return ids

    def to_event(self, users: Dict[int, User]) -> Event:
        return Event(
            id=self.id,
            name=self.name,
            schedule=normalize_schedule(self.schedule),
            config=EventConfig(
                durations=[DurationOption(minutes=d.minutes, label=d.label) for d in self.durations],
                buffer_minutes=self.buffer_minutes,
                advance_notice_minutes=self.advance_notice_minutes,
                availability_type=self.availability_type,
                routing_enabled=self.routing_enabled,
                routing_instructions=self.routing_instructions,
                routing_fallback=self.routing_fallback,
            ),
            creator=users.get(self.creator) if self.creator is not None else None,
            assignees=[Assignee(user=users[a.user], role=a.role) for a in self.assignees],
        )


class BookingConfig(BaseModel):
    """An existing booking used to seed the in-memory store."""
    id: Optional[int] = None
    event: int
    start: str
    end: str
    assigned_to: Optional[int] = None
    cancelled: bool = False
    created: Optional[str] = None

    @field_validator("start", "end", "created")
    @classmethod
    def validate_datetime(cls, value: Optional[str]) -> Optional[str]:
        """Ensure timestamps are ISO 8601 datetimes."""
        if value is None:
            return value
        try:
            parsed = pendulum.parse(value)
        except ValueError as exc:
            raise ValueError(f"Invalid datetime: {value}") from exc
        if not isinstance(parsed, DateTime):
            raise ValueError(f"Not a datetime: {value}")
        return value

    @model_validator(mode="after")
    def validate_order(self) -> "BookingConfig":
        if pendulum.parse(self.start) >= pendulum.parse(self.end):
            raise ValueError(f"Booking end {self.end} must be after start {self.start}")
        return self

    def to_booking(self, users: Dict[int, User]) -> Booking:
        return Booking(
            id=self.id,
            event_id=self.event,
            start=to_utc(pendulum.parse(self.start)),
            end=to_utc(pendulum.parse(self.end)),
            assigned_to=users.get(self.assigned_to) if self.assigned_to is not None else None,
            cancelled=self.cancelled,
            status="cancelled" if self.cancelled else "confirmed",
            created=to_utc(pendulum.parse(self.created)) if self.created else None,
        )


class AppConfig(BaseModel):
    """Application configuration."""
    defaults: DefaultsConfig = Field(default_factory=DefaultsConfig)
    ai: AIRoutingConfig = Field(default_factory=AIRoutingConfig)
    users: List[UserConfig] = Field(default_factory=list)
    events: List[EventDefinition] = Field(default_factory=list)
    bookings: List[BookingConfig] = Field(default_factory=list)
    log_level: str = "WARNING"

    @field_validator("users")
    @classmethod
    def validate_users(cls, value: List[UserConfig]) -> List[UserConfig]:
        """Ensure user ids are unique."""
        seen: set[int] = set()
        for user in value:
            if user.id in seen:
                raise ValueError(f"Duplicate user id detected: {user.id}")
            seen.add(user.id)
        return value

    @field_validator("events")
    @classmethod
    def validate_events(cls, value: List[EventDefinition]) -> List[EventDefinition]:
        """Ensure event ids are unique."""
        seen: set[int] = set()
        for event in value:
            if event.id in seen:
                raise ValueError(f"Duplicate event id detected: {event.id}")
            seen.add(event.id)
        return value

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {value}")
        return level

    @model_validator(mode="after")
    def validate_references(self) -> "AppConfig":
        """Ensure events and bookings only reference configured users and events."""
        user_ids = {u.id for u in self.users}
        event_ids = {e.id for e in self.events}

        for event in self.events:
            missing = sorted(set(event.referenced_user_ids()) - user_ids)
            if missing:
                raise ValueError(f"Event {event.id} references unknown user(s): {missing}")

        for booking in self.bookings:
            if booking.event not in event_ids:
                raise ValueError(f"Booking references unknown event {booking.event}")
            if booking.assigned_to is not None and booking.assigned_to not in user_ids:
                raise ValueError(f"Booking references unknown user {booking.assigned_to}")
        return self

    @classmethod
    def load_from_yaml(cls, config_path: Path) -> "AppConfig":
        """
        Load configuration from YAML file.

        Args:
            config_path: Path to the YAML config file

        Returns:
            AppConfig instance

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If config is invalid
        """
        if not config_path.exists():
            raise FileNotFoundError(
                f"Config file not found: {config_path}\n"
                f"Please create a {CONFIG_FILE_NAME} file. See slotrouter.example.yaml for reference."
            )

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in {config_path}: {exc}") from exc

        if not isinstance(data, dict):
            raise ValueError("Config file must contain a mapping at the root level.")

        return cls(**data)

    def user_map(self) -> Dict[int, User]:
        return {u.id: u.to_user() for u in self.users}

    def find_user(self, user_id: int) -> User | None:
        return self.user_map().get(user_id)

    def find_event(self, event_id: int) -> Event | None:
        """Build the domain event with the given id."""
        users = self.user_map()
        for definition in self.events:
            if definition.id == event_id:
                return definition.to_event(users)
        return None

    def build_events(self) -> Dict[int, Event]:
        users = self.user_map()
        return {d.id: d.to_event(users) for d in self.events}

    def build_bookings(self) -> List[Booking]:
        users = self.user_map()
        return [b.to_booking(users) for b in self.bookings]


def get_default_config_path() -> Path:
    """Get the default configuration file path."""
    # Look for slotrouter.yaml in current directory
    config_path = Path.cwd() / CONFIG_FILE_NAME

    if not config_path.exists():
        # Try in the project root (parent of the package)
        project_root = Path(__file__).parent.parent
        config_path = project_root / CONFIG_FILE_NAME

    return config_path
