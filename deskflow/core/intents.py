import re

# Valid Intents
ONBOARDING = "onboarding"
OFFBOARDING = "offboarding"
IT_SUPPORT = "it_support"
GENERAL = "general"

ALL_INTENTS = [ONBOARDING, OFFBOARDING, IT_SUPPORT, GENERAL]

# Intent Metadata for the classification prompt
INTENT_DESCRIPTIONS = {
    ONBOARDING: "Bringing a new employee or hire on board (accounts, equipment, first day)",
    OFFBOARDING: "An employee or contractor is leaving; remove access and recover equipment",
    IT_SUPPORT: "Something technical is broken or not working (VPN, email, software, hardware, access)",
    GENERAL: "Greetings, questions about capabilities, anything else",
}

# Choice values that select an intent directly (menu buttons, legacy clients)
CHOICE_INTENT_ALIASES = {
    "onboarding": ONBOARDING,
    "new_hire": ONBOARDING,
    "employee_onboarding": ONBOARDING,
    "offboarding": OFFBOARDING,
    "employee_exit": OFFBOARDING,
    "contractor_offboarding": OFFBOARDING,
    "it_support": IT_SUPPORT,
    "it_resolution": IT_SUPPORT,
    "it_help": IT_SUPPORT,
    "it_issue": IT_SUPPORT,
}

# Rules used when none are configured; lower priority number wins ties and earns a larger bonus
DEFAULT_INTENT_RULES = [
    {
        "intent": ONBOARDING,
        "keywords": ["new hire", "onboarding", "new employee", "start date", "joining", "new starter",
                     "equipment request", "first day"],
        "priority": 1,
    },
    {
        "intent": OFFBOARDING,
        "keywords": ["offboarding", "leaving", "exit", "departure", "termination", "last day", "resign",
                     "separation", "departing"],
        "priority": 2,
    },
    {
        "intent": IT_SUPPORT,
        "keywords": ["vpn", "password", "reset", "network", "wifi", "email", "outlook", "slow", "not working",
                     "broken", "error", "help desk", "ticket", "incident", "connectivity", "software", "hardware"],
        "priority": 3,
    },
    {
        "intent": GENERAL,
        "keywords": ["help", "hello", "hi", "hey", "what can you do", "menu"],
        "priority": 10,
    },
]

# Last-resort keywords when neither the LLM nor the rules match; each matches at the start of a word
FALLBACK_KEYWORDS = {
    ONBOARDING: ["new hire", "onboard", "new employee", "start date", "joining", "new starter", "first day"],
    OFFBOARDING: ["offboard", "leaving", "exit", "departure", "termination", "last day", "resign",
                  "separation", "depart"],
    IT_SUPPORT: ["vpn", "password", "reset", "network", "wifi", "email", "outlook", "slow", "not working",
                 "broken", "error", "issue", "help desk", "ticket", "incident", "connectivity"],
}

# Phrasings the keyword lists miss
FALLBACK_PHRASES = {
    ONBOARDING: [r"start(ing|ed)?\s*(work|job|position)"],
    OFFBOARDING: [r"contractor.*(end|leav|depart|last)", r"access\s*removal", r"final\s*day"],
    IT_SUPPORT: [
        r"can'?t\s*(log|access|connect|sign)",
        r"tech\s*support",
        r"(computer|laptop|monitor|printer).*(slow|crash|flicker|won'?t)",
    ],
}

FALLBACK_PATTERNS = {
    intent: [re.compile(rf"\b{re.escape(k)}") for k in FALLBACK_KEYWORDS[intent]]
            + [re.compile(p) for p in FALLBACK_PHRASES[intent]]
    for intent in FALLBACK_KEYWORDS
}

FALLBACK_CONFIDENCE = 0.7
GENERAL_CONFIDENCE = 0.3

# Reserved choice values handled outside any flow
START_OVER = "start_over"
END_CONVERSATION = "end_conversation"
TRY_AGAIN = "try_again"

def normalize_choice(value: str) -> str:
    return re.sub(r"[\s\-]+", "_", (value or "").strip().lower())

def resolve_choice_intent(value: str):
    return CHOICE_INTENT_ALIASES.get(normalize_choice(value))
