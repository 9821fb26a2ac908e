"""
Translate binding action results into HTTP responses.
"""
from fastapi import HTTPException, status

from portfolio_cms.bindings.base import ActionResult, ActionStatus, Confirm, always, never


def action_response(result: ActionResult) -> dict:
    """
    Return the JSON body for a successful or cancelled action.

    Raises:
        HTTPException: 400 for validation failures, 500 for store/storage failures
    """
    if result.status == ActionStatus.INVALID:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "Invalid request", "detail": result.message}
        )
    if result.status == ActionStatus.FAILED:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": "Action failed", "detail": result.message}
        )
    return {
        "status": result.status.value,
        "message": result.message,
        "cancelled": result.status == ActionStatus.CANCELLED,
        "data": result.data,
    }


def confirm_flag(confirm: bool) -> Confirm:
    """HTTP callers confirm destructive actions up front with ?confirm=true."""
    return always if confirm else never
