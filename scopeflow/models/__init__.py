from .api_validation import (
    ChatRequest,
    ChangeOrderRequest,
    SubmitFormRequest,
    ResolveChangeOrderRequest,
    CreateProjectRequest,
    UpdateProjectRequest,
)

__all__ = [
    "ChatRequest",
    "ChangeOrderRequest",
    "SubmitFormRequest",
    "ResolveChangeOrderRequest",
    "CreateProjectRequest",
    "UpdateProjectRequest",
]
