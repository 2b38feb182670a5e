"""
utils/constants.py

Purpose: Centralized static content

- Prompt templates sent to the language model
- User-facing error and status messages
- Subscription plan catalogue
- Widget defaults

(Prevents hardcoding across the codebase)
"""

# ============================================================
# PROMPTS
# ============================================================

DEFAULT_SYSTEM_PROMPT = (
    "You are HelpMate AI, a helpful customer service assistant. "
    "Provide concise, accurate, and friendly responses to customer queries."
)

KNOWLEDGE_SYSTEM_PROMPT = """You are HelpMate AI, a helpful customer service assistant for {company}.
Use the following information to provide accurate, helpful, and friendly responses to customer queries.
When you don't know the answer, say so politely and suggest contacting a human representative.

{context}

Respond in a conversational, helpful tone. Keep responses concise yet thorough."""

WEBSITE_PROMPT_HEAD = "You are a helpful customer service assistant for the website {domain}."

WEBSITE_PROMPT_CONTEXT = " Use the following information to answer questions accurately:\n\n{context}"

WEBSITE_PROMPT_TAIL = (
    " Always provide accurate and helpful responses to customer inquiries. "
    "If you don't know the answer, suggest the customer reaches out to a human agent."
)

TITLE_PROMPT = (
    "Generate a short, concise title (5 words max) for a conversation that starts "
    "with this message. Return only the title with no quotes or additional text."
)

SUMMARY_PROMPT = (
    "You condense reference material for a customer support assistant. "
    "Summarize the text below, keeping facts a customer might ask about "
    "(products, prices, policies, contact details, opening hours). "
    "Prefer details related to this question: {question}\n"
    "Return plain text only."
)

# ============================================================
# CONTEXT SECTION HEADINGS
# ============================================================

HEADING_WEBSITE = "WEBSITE CONTENT"
HEADING_DOCUMENTS = "DOCUMENT CONTENT"
HEADING_PAGE = "CURRENT PAGE"
HEADING_SUMMARY = "ADDITIONAL CONTEXT (summarized)"

# ============================================================
# MESSAGES
# ============================================================

DEFAULT_CHAT_TITLE = "New Conversation"

WIDGET_CHAT_TITLE = "Website Chat - {domain}"

ESCALATION_MESSAGE = (
    "This conversation has been escalated to a human agent. "
    "An agent will respond shortly."
)

CHAT_LIMIT_MESSAGE = (
    "You have reached your monthly chat limit. "
    "Please upgrade your plan for unlimited chats."
)

WIDGET_LIMIT_MESSAGE = "This website has reached its chat limit for the current period."

# ============================================================
# SUBSCRIPTION PLANS
# ============================================================

# Prices are in paise (smallest INR unit)
PLANS = {
    "basic": {
        "monthly_price": 99900,
        "yearly_price": 999900,
        "name": "Basic Plan",
        "description": "For small businesses",
        "chat_limit": 500,
        "features": [
            "500 AI chat interactions per month",
            "Website chat widget",
            "Email support",
            "Basic analytics",
        ],
    },
    "premium": {
        "monthly_price": 249900,
        "yearly_price": 2499900,
        "name": "Premium Plan",
        "description": "For growing businesses",
        "chat_limit": None,  # unlimited
        "features": [
            "Unlimited AI chat interactions",
            "Advanced widget customization",
            "Knowledge base integration",
            "Priority support",
            "Advanced analytics and reporting",
            "Multiple website integrations",
        ],
    },
}

PAYMENT_CYCLES = ("monthly", "yearly")

TRIAL_PLAN = "basic"

# ============================================================
# WIDGET DEFAULTS
# ============================================================

WIDGET_SCRIPT_ID = "helpmate-widget"

DEFAULT_WIDGET_SETTINGS = {
    "primary_color": "#4F46E5",
    "position": "bottom-right",
    "welcome_message": "Hi there! How can I help you today?",
    "chat_title": "Customer Support",
}
