"""
Data models for the Intent Resolver component.
"""

from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from comlink.session_store.models import SessionMutation


class IntentType(str, Enum):
    INSTALL = "install"
    UNINSTALL = "uninstall"
    EXECUTE = "execute"
    SEARCH = "search"
    LIST = "list"
    HELP = "help"
    UNKNOWN = "unknown"


class IntentSource(str, Enum):
    CLASSIFIER = "classifier"
    FALLBACK = "fallback"


class ToolNameParameters(BaseModel):
    tool_name: str


class SearchParameters(BaseModel):
    query: str = ""


class ExecuteParameters(BaseModel):
    """Call arguments extracted for a tool; classifiers may add their own keys."""
    model_config = ConfigDict(extra="allow")

    query: Optional[str] = None
    location: Optional[str] = None

    def arguments(self) -> Dict[str, Any]:
        """Arguments that were actually extracted."""
        return self.model_dump(exclude_none=True)


class EmptyParameters(BaseModel):
    model_config = ConfigDict(extra="allow")


class BaseIntent(BaseModel):
    """Fields shared by every intent variant."""
    confidence: float = Field(ge=0.0, le=1.0)
    original_text: str = ""
    reasoning: Optional[str] = None
    source: IntentSource = IntentSource.FALLBACK


class InstallIntent(BaseIntent):
    type: Literal[IntentType.INSTALL] = IntentType.INSTALL
    tool_id: str
    parameters: ToolNameParameters


class UninstallIntent(BaseIntent):
    type: Literal[IntentType.UNINSTALL] = IntentType.UNINSTALL
    tool_id: str
    parameters: ToolNameParameters


class ExecuteIntent(BaseIntent):
    type: Literal[IntentType.EXECUTE] = IntentType.EXECUTE
    tool_id: str
    parameters: ExecuteParameters = Field(default_factory=ExecuteParameters)


class SearchIntent(BaseIntent):
    type: Literal[IntentType.SEARCH] = IntentType.SEARCH
    parameters: SearchParameters = Field(default_factory=SearchParameters)


class ListIntent(BaseIntent):
    type: Literal[IntentType.LIST] = IntentType.LIST
    parameters: EmptyParameters = Field(default_factory=EmptyParameters)


class HelpIntent(BaseIntent):
    type: Literal[IntentType.HELP] = IntentType.HELP
    parameters: EmptyParameters = Field(default_factory=EmptyParameters)


class UnknownIntent(BaseIntent):
    type: Literal[IntentType.UNKNOWN] = IntentType.UNKNOWN
    parameters: EmptyParameters = Field(default_factory=EmptyParameters)


Intent = Annotated[
    Union[
        InstallIntent,
        UninstallIntent,
        ExecuteIntent,
        SearchIntent,
        ListIntent,
        HelpIntent,
        UnknownIntent,
    ],
    Field(discriminator="type"),
]


class ClassifierVerdict(BaseModel):
    """
    What an external classifier answers for a piece of text.

    Validating the raw answer against this model is what rejects malformed
    classifier output.
    """
    type: IntentType
    confidence: float = 0.0
    parameters: Dict[str, Any] = Field(default_factory=dict)
    reasoning: Optional[str] = None

    @field_validator("confidence")
    @classmethod
    def clamp_confidence(cls, value: float) -> float:
        return min(max(value, 0.0), 1.0)

    @field_validator("parameters", mode="before")
    @classmethod
    def default_parameters(cls, value: Any) -> Any:
        return {} if value is None else value


class MediaItem(BaseModel):
    type: str  # "gif", "image", ...
    url: str
    title: Optional[str] = None
    description: Optional[str] = None


class ToolInvocation(BaseModel):
    """What the caller's transport should invoke for an execute intent."""
    tool_id: str
    arguments: Dict[str, Any] = Field(default_factory=dict)


class ExecutionResult(BaseModel):
    """
    Outcome of executing an intent.

    Failures are values, not exceptions. session_effect describes the installed
    set change the caller applies after a successful install or uninstall.
    """
    success: bool
    content: str
    media: Optional[List[MediaItem]] = None
    error: Optional[str] = None
    invocation: Optional[ToolInvocation] = None
    session_effect: Optional[SessionMutation] = None
