"""Exception hierarchy shared by the API, the web views and the CLI."""

from __future__ import annotations

from typing import Dict, List, Sequence, Union


class BudgetPayError(Exception):
    """Base class for all Budget Pay errors."""

    status_code = 400

    def __init__(self, message: str, code: str = "BUDGET_PAY_ERROR") -> None:
        super().__init__(message)
        self.code = code
        self.message = message

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r})"

    def to_detail(self) -> Union[str, List[Dict[str, str]]]:
        return self.message


class ValidationError(BudgetPayError):
    """Raised when submitted data fails validation.

    Attributes:
        messages: Every problem found, in the order they were detected.
    """

    status_code = 422

    def __init__(self, messages: Union[str, Sequence[str]]) -> None:
        if isinstance(messages, str):
            messages = [messages]
        self.messages = list(messages)
        super().__init__("; ".join(self.messages), code="VALIDATION_ERROR")

    def to_detail(self) -> List[Dict[str, str]]:
        return [{"msg": m, "type": "value_error"} for m in self.messages]


class NotFoundError(BudgetPayError):
    status_code = 404

    def __init__(self, resource: str, resource_id: object) -> None:
        super().__init__(f"{resource} {resource_id} not found.", code="NOT_FOUND")
        self.resource = resource
        self.resource_id = resource_id


class AuthenticationError(BudgetPayError):
    status_code = 401

    def __init__(self, message: str = "Not authenticated.") -> None:
        super().__init__(message, code="NOT_AUTHENTICATED")


class AllocationError(BudgetPayError):
    """
    Raised when a category change would push the total allocation past 100%.

    Attributes:
        requested_total: The total percentage the change would produce.
    """

    status_code = 409

    def __init__(self, requested_total: float) -> None:
        super().__init__(
            f"Total allocation would be {requested_total:.2f}%, which exceeds 100%. "
            "Resubmit with adjust_others to rebalance the other categories.",
            code="ALLOCATION_EXCEEDED",
        )
        self.requested_total = requested_total


class AssistantError(BudgetPayError):
    status_code = 502

    def __init__(self, message: str) -> None:
        super().__init__(message, code="ASSISTANT_FAILED")


class AssistantUnavailableError(AssistantError):
    status_code = 503

    def __init__(self) -> None:
        BudgetPayError.__init__(
            self, "The financial assistant is not configured.", code="ASSISTANT_UNAVAILABLE"
        )
