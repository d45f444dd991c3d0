from .onboarding import ONBOARDING_FLOW
from .offboarding import OFFBOARDING_FLOW
from .it_support import IT_SUPPORT_FLOW

# Registry of all available flows
# New flows should be added here
AVAILABLE_FLOWS = [
    ONBOARDING_FLOW,
    OFFBOARDING_FLOW,
    IT_SUPPORT_FLOW
]
