class RunStreakError(Exception):
    """Base class for errors surfaced to API clients."""
    status_code = 400

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail

class NotFound(RunStreakError):
    status_code = 404

class InsufficientBalance(RunStreakError):
    status_code = 400

class WeeklyLimitExceeded(RunStreakError):
    status_code = 409

class StorageUnavailable(RunStreakError):
    # transient; every engine operation is safe to retry
    status_code = 503

class InvalidRequest(RunStreakError):
    status_code = 400

class FriendRequestExists(RunStreakError):
    status_code = 409
