"""
Custom exceptions for the chore coins engine.
Each domain exception carries a machine-readable kind, a human-readable
message and an HTTP-like status code.
"""


class ChoreCoinsException(Exception):
    """Base exception for the chore coins engine"""
    kind = "error"
    status_code = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationException(ChoreCoinsException):
    """Raised when input data fails validation"""
    kind = "validation_error"
    status_code = 400

    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__(f"Validation error for {field}: {message}")


class InvalidTimeFormatException(ValidationException):
    """Raised when time format is invalid"""
    def __init__(self, time_str: str):
        self.time_str = time_str
        super().__init__("due_time", f"Invalid time format: {time_str}. Expected HH:MM")


class InvalidDateFormatException(ValidationException):
    """Raised when a recurrence date is not a valid DD-MM-YYYY date"""
    def __init__(self, date_str: str):
        self.date_str = date_str
        super().__init__(
            "recurrence_dates",
            f"Invalid date: {date_str}. Expected a valid DD-MM-YYYY date"
        )


class InsufficientBalanceException(ValidationException):
    """Raised when a spending entry would make the coin balance negative"""
    def __init__(self, child_id: str, balance: int, amount: int):
        self.child_id = child_id
        self.balance = balance
        self.amount = amount
        super().__init__(
            "amount",
            f"Insufficient coin balance: {balance} available, {amount} requested"
        )


class ForbiddenException(ChoreCoinsException):
    """Raised when the actor may not perform the requested operation"""
    kind = "forbidden"
    status_code = 403


class InvalidTransitionException(ChoreCoinsException):
    """Raised when the current status does not permit the requested change"""
    kind = "invalid_transition"
    status_code = 409

    def __init__(self, current_status: str, attempted_status: str, message: str = None):
        self.current_status = current_status
        self.attempted_status = attempted_status
        super().__init__(
            message or f"Cannot move task from {current_status} to {attempted_status}"
        )


class NoOpException(ChoreCoinsException):
    """Raised when materialization produced nothing new"""
    kind = "noop"
    status_code = 409

    def __init__(self, message: str = "Nothing new to create: every date already has a task"):
        super().__init__(message)


class ConflictException(ChoreCoinsException):
    """Raised when a concurrent insert won the (template, child, date) race"""
    kind = "conflict"
    status_code = 409

    def __init__(self, template_id: str, child_id: str, due_date):
        self.template_id = template_id
        self.child_id = child_id
        self.due_date = due_date
        super().__init__(
            f"Task for template {template_id}, child {child_id} on {due_date} already exists"
        )


class TaskNotFoundException(ChoreCoinsException):
    """Raised when a task is not found"""
    kind = "not_found"
    status_code = 404

    def __init__(self, task_id: str):
        self.task_id = task_id
        super().__init__(f"Task with ID {task_id} not found")


class TemplateNotFoundException(ChoreCoinsException):
    """Raised when a task template is not found"""
    kind = "not_found"
    status_code = 404

    def __init__(self, template_id: str):
        self.template_id = template_id
        super().__init__(f"Task template with ID {template_id} not found")


class NotificationNotFoundException(ChoreCoinsException):
    """Raised when a notification is not found"""
    kind = "not_found"
    status_code = 404

    def __init__(self, notification_id: str):
        self.notification_id = notification_id
        super().__init__(f"Notification with ID {notification_id} not found")
