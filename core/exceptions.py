class VaccinationError(Exception):
    """Base class for scheduling and reminder engine errors."""


class InvalidTransition(VaccinationError):
    def __init__(self, current, target, record_id=None):
        self.current = current
        self.target = target
        self.record_id = record_id
        super().__init__(
            f"Cannot move vaccination record {record_id} from '{current}' to '{target}'"
        )


class NotFound(VaccinationError):
    pass


class UnknownJob(VaccinationError):
    def __init__(self, name):
        self.name = name
        super().__init__(f"Unknown job: {name}")


class DispatchFailure(VaccinationError):
    def __init__(self, notification_id, error=None):
        self.notification_id = notification_id
        self.error = error
        super().__init__(f"Notification {notification_id} was not delivered: {error or 'no channel succeeded'}")


class StoreFailure(VaccinationError):
    pass
