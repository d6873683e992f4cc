"""Domain exceptions for the collection service.

Every error raised by the core derives from ``GbeGneError`` so the API layer
can render it with a single exception handler. A lookup that finds no rows
is never an error here: those calls return ``None``.
"""

from typing import Optional


class GbeGneError(Exception):
    """Base exception for all collection service errors."""

    def __init__(
        self,
        detail: str = "An unexpected error occurred",
        code: str = "GBEGNE_ERROR",
        status_code: int = 500,
    ) -> None:
        self.detail = detail
        self.code = code
        self.status_code = status_code
        super().__init__(detail)


# ============== Device ==============


class RecordingPermissionError(GbeGneError):
    """Raised when microphone or storage access is denied."""

    def __init__(self, detail: str = "Microphone permission is required to record") -> None:
        super().__init__(detail=detail, code="PERMISSION_DENIED", status_code=403)


class RecorderError(GbeGneError):
    """Raised when the recording device fails to start or stop."""

    def __init__(self, detail: str = "Failed to start recording. Please try again.") -> None:
        super().__init__(detail=detail, code="RECORDER_ERROR", status_code=409)


# ============== Remote archive ==============


class UploadError(GbeGneError):
    """Raised when the audio blob cannot be written to storage."""

    def __init__(self, detail: str = "Failed to upload recording") -> None:
        super().__init__(detail=detail, code="UPLOAD_FAILED", status_code=502)


class InsertError(GbeGneError):
    """Raised when the recording metadata row cannot be inserted."""

    def __init__(self, detail: str = "Failed to save recording metadata") -> None:
        super().__init__(detail=detail, code="INSERT_FAILED", status_code=502)


# ============== Local progress ==============


class CompletionMarkError(GbeGneError):
    """Raised when a prompt cannot be marked completed locally."""

    def __init__(self, detail: str = "Failed to mark text as completed") -> None:
        super().__init__(detail=detail, code="COMPLETION_MARK_FAILED", status_code=500)


# ============== Identity ==============


class IdentityLookupError(GbeGneError):
    """Raised when the current owner cannot be resolved."""

    def __init__(self, detail: str = "Could not resolve the current user") -> None:
        super().__init__(detail=detail, code="IDENTITY_LOOKUP_FAILED", status_code=503)


class OwnerRequiredError(GbeGneError):
    """Raised when an action needs a registered user or a guest profile."""

    def __init__(self) -> None:
        super().__init__(
            detail="Sign in or continue as a guest first",
            code="OWNER_REQUIRED",
            status_code=401,
        )


class InvalidUsernameError(GbeGneError):
    """Raised when a guest username is empty or too short."""

    def __init__(self, detail: str) -> None:
        super().__init__(detail=detail, code="INVALID_USERNAME", status_code=400)


# ============== Accounts ==============


class EmailAlreadyRegisteredError(GbeGneError):
    def __init__(self) -> None:
        super().__init__(
            detail="An account with this email already exists. Please try logging in instead.",
            code="EMAIL_ALREADY_REGISTERED",
            status_code=409,
        )


class WeakPasswordError(GbeGneError):
    def __init__(self, min_length: int) -> None:
        super().__init__(
            detail=f"Password must be at least {min_length} characters long.",
            code="WEAK_PASSWORD",
            status_code=400,
        )


class InvalidCredentialsError(GbeGneError):
    def __init__(self) -> None:
        super().__init__(
            detail="Invalid email or password",
            code="INVALID_CREDENTIALS",
            status_code=401,
        )


class EmailNotConfirmedError(GbeGneError):
    def __init__(self) -> None:
        super().__init__(
            detail="Please check your email and click the verification link before signing in.",
            code="EMAIL_NOT_CONFIRMED",
            status_code=403,
        )


class InvalidVerificationTokenError(GbeGneError):
    def __init__(self) -> None:
        super().__init__(
            detail="Verification link is invalid or has already been used",
            code="INVALID_VERIFICATION_TOKEN",
            status_code=400,
        )


class VerificationThrottledError(GbeGneError):
    def __init__(self, retry_after: int) -> None:
        self.retry_after = retry_after
        super().__init__(
            detail="Please wait a moment before requesting another verification email.",
            code="VERIFICATION_THROTTLED",
            status_code=429,
        )


# ============== Lookups ==============


class PromptNotFoundError(GbeGneError):
    def __init__(self, language: str, prompt_id: int) -> None:
        super().__init__(
            detail=f"Prompt {prompt_id} not found in {language} catalog",
            code="PROMPT_NOT_FOUND",
            status_code=404,
        )


class ArtifactNotFoundError(GbeGneError):
    def __init__(self, artifact_id: str) -> None:
        super().__init__(
            detail=f"Recording artifact {artifact_id} not found. Please record audio first.",
            code="ARTIFACT_NOT_FOUND",
            status_code=404,
        )


class RecordingNotFoundError(GbeGneError):
    def __init__(self, recording_id: str) -> None:
        super().__init__(
            detail=f"Recording {recording_id} not found",
            code="RECORDING_NOT_FOUND",
            status_code=404,
        )


# ============== Save flow ==============


class SaveInProgressError(GbeGneError):
    """Raised when a save is already running for the same owner."""

    def __init__(self) -> None:
        super().__init__(
            detail="A save is already in progress",
            code="SAVE_IN_PROGRESS",
            status_code=409,
        )


class SaveFailedError(GbeGneError):
    """Raised when a save attempt stops at the upload or insert stage.

    ``stage`` names the stage that failed so the caller can decide whether
    to keep the artifact for a manual retry.
    """

    def __init__(self, stage: str, cause: GbeGneError, attempt: Optional[object] = None) -> None:
        self.stage = stage
        self.cause = cause
        self.attempt = attempt
        super().__init__(
            detail=f"Save failed while {stage}: {cause.detail}",
            code=cause.code,
            status_code=cause.status_code,
        )
