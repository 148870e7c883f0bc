"""
Test Fixtures

Shared test data for the badgescan test suite: images, model output and
upstream error bodies as the providers actually send them.
"""

# 1x1 transparent PNG
PNG_DATA_URI = "data:image/png;base64,iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=="

SAMPLE_TEXT = "Name: Jane\nCompany: Acme\nRole: CTO\nCredentials: -"

MULTI_PERSON_TEXT = (
    "Name: Jane Doe\nCompany: Acme\nRole: CTO\nCredentials: PhD\n"
    "\n"
    "Name: John Roe\nCompany: -\nRole: Engineer\nCredentials: -"
)

# OpenAI passes the inner error object to APIStatusError.body
OPENAI_RPM_ERROR = {
    "message": (
        "Rate limit reached for gpt-4o in organization org-abc on requests per "
        "minute (RPM): Limit 500, Used 500, Requested 1."
    ),
    "type": "requests",
    "code": "rate_limit_exceeded",
}

OPENAI_TPM_ERROR = {
    "message": (
        "Rate limit reached for gpt-4o in organization org-abc on tokens per "
        "minute (TPM): Limit 30000, Used 29500, Requested 1200."
    ),
    "type": "tokens",
    "code": "rate_limit_exceeded",
}

OPENAI_RPD_ERROR = {
    "message": (
        "Rate limit reached for gpt-4o in organization org-abc on requests per "
        "day (RPD): Limit 200, Used 200, Requested 1."
    ),
    "type": "requests",
    "code": "rate_limit_exceeded",
}

OPENAI_QUOTA_ERROR = {
    "message": "You exceeded your current quota, please check your plan and billing details.",
    "type": "insufficient_quota",
    "code": "insufficient_quota",
}

# Anthropic and OpenRouter pass the whole envelope
ANTHROPIC_RATE_LIMIT_ERROR = {
    "type": "error",
    "error": {
        "type": "rate_limit_error",
        "message": "Number of request tokens has exceeded your per-minute rate limit",
    },
}

OPENROUTER_CREDITS_ERROR = {
    "error": {
        "code": 402,
        "message": "Insufficient credits. Add more using https://openrouter.ai/credits",
    }
}

OPENROUTER_QUOTA_ERROR = {
    "error": {
        "code": 403,
        "message": "Key limit exceeded: quota exhausted for this API key",
    }
}
