"""Session sagas."""

from .session_end import SessionEndSaga, SessionEndSteps, consumption_quantity
from .session_provisioning import ProvisioningPlan, SessionProvisioningSaga

__all__ = [
    "ProvisioningPlan",
    "SessionEndSaga",
    "SessionEndSteps",
    "SessionProvisioningSaga",
    "consumption_quantity",
]
