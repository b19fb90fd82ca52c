"""Domain exceptions. Routers translate them into HTTP errors."""


class TrainerError(Exception):
    """Base class for engine errors."""

    code = "trainer_error"


class InvalidAttemptError(TrainerError):
    """Malformed or out-of-range session configuration / metrics.

    Raised before anything touches the attempt ledger.
    """

    code = "invalid_input"


class UnknownTrainerError(TrainerError):
    code = "invalid_trainer"

    def __init__(self, trainer_id: str):
        super().__init__(f"Unknown trainer: {trainer_id!r}")
        self.trainer_id = trainer_id


class UnknownPresetError(TrainerError):
    code = "invalid_preset"

    def __init__(self, trainer_id: str, preset_id: str):
        super().__init__(f"Unknown preset {preset_id!r} for trainer {trainer_id!r}")
        self.trainer_id = trainer_id
        self.preset_id = preset_id


class PresetLockedError(TrainerError):
    code = "preset_locked"

    def __init__(self, preset_id: str, reason: str | None = None):
        super().__init__(reason or f"Preset {preset_id!r} is locked")
        self.preset_id = preset_id
        self.reason = reason


class ProgressLoadError(TrainerError):
    """Progress could not be loaded at flow entry. Recoverable via retry."""

    code = "progress_unavailable"


class SyncError(TrainerError):
    """Transient persistence failure while recording a result."""

    code = "sync_failed"


class FlowStateError(TrainerError):
    """Flow event that is not valid in the current state."""

    code = "invalid_state"

    def __init__(self, event: str, state: str):
        super().__init__(f"{event}() is not allowed in state {state!r}")
        self.event = event
        self.state = state
