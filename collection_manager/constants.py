"""Portal URLs, label synonyms, selectors and page-text patterns."""

import re

# ── URLs ─────────────────────────────────────────────────────────────────────

PORTAL_FORM_URL = "https://wwwapps.ups.com/pickup/schedule?loc=en_GB"
PORTAL_LOGIN_URL = f"https://www.ups.com/lasso/login?loc=en_GB&returnto={PORTAL_FORM_URL}"
AUTHENTICATED_HOST = "wwwapps.ups.com"

# ── Timeouts (ms) ────────────────────────────────────────────────────────────

LOGIN_NAVIGATION_TIMEOUT = 90000
FORM_NAVIGATION_TIMEOUT = 60000
USERNAME_FIELD_TIMEOUT = 10000
PASSWORD_FIELD_TIMEOUT = 15000  # identity provider may need a round trip
LOGIN_RACE_TIMEOUT = 60000
NETWORK_IDLE_TIMEOUT = 30000
CLICK_TIMEOUT = 5000
CHALLENGE_TIMEOUT = 30000

# Settle delays after navigation or clicks
PAGE_SETTLE_MS = 5000
FORM_SETTLE_MS = 3000
CONSENT_SETTLE_MS = 2000
STEP_SETTLE_MS = 2000
CONFIRMATION_SETTLE_MS = 3000

# ── Login ────────────────────────────────────────────────────────────────────

USERNAME_SELECTORS = [
    'input[name="username"]',
    'input[id="username"]',
    'input[type="email"]',
    'input[name="email"]',
    "#email",
    'input[id*="email"]',
    'input[placeholder*="email" i]',
    'input[placeholder*="username" i]',
]

PASSWORD_SELECTORS = [
    'input[type="password"]',
    'input[name="password"]',
    "#password",
    'input[id*="password"]',
]

CONTINUE_BUTTON_SELECTOR = (
    'button[type="submit"], button:has-text("Continue"), '
    'button:has-text("Next"), input[type="submit"]'
)

LOGIN_BUTTON_SELECTOR = (
    'button[type="submit"], input[type="submit"], button:has-text("Log In"), '
    'button:has-text("Sign In"), button:has-text("Continue")'
)

LOGGED_IN_MARKERS = (
    '[aria-label*="account"], [aria-label*="user"], .user-menu, [data-testid*="account"]'
)

# ── Consent overlays ─────────────────────────────────────────────────────────

CONSENT_OVERLAY_SELECTORS = [
    "#onetrust-consent-sdk",
    ".onetrust-pc-dark-filter",
    "#onetrust-banner-sdk",
    '[class*="cookie-overlay"]',
    '[class*="consent-overlay"]',
    '[id*="cookie-banner"]',
]

CONSENT_ACCEPT_SELECTORS = [
    "#onetrust-accept-btn-handler",
    "#accept-recommended-btn-handler",
    'button[id*="accept"]',
    'button:has-text("Accept All")',
    'button:has-text("Accept Cookies")',
    'button:has-text("Accept")',
    'button:has-text("I Agree")',
    'button:has-text("Got it")',
]

# ── Bot-detection interstitials ──────────────────────────────────────────────

CHALLENGE_INDICATORS = [
    "Just a moment...",
    "Checking your browser",
    "cf-challenge",
    "challenge-platform",
    "Access Denied",
    "_Incapsula_Resource",
]

# ── Collection form ──────────────────────────────────────────────────────────

DIFFERENT_ADDRESS_SELECTORS = [
    'input[type="radio"][value="NEW"]',
    'input[type="radio"][id*="different"]',
    'input[type="radio"][id*="new"]',
    'label:has-text("different collection address") input[type="radio"]',
    'label:has-text("A different collection") input[type="radio"]',
]

# Ordered label synonyms per form field
FIELD_LABELS = {
    "company": ["Company", "Company Name", "company"],
    "address": ["Address Line 1", "Address", "Street Address", "addressLine1"],
    "city": ["City", "Town", "city"],
    "postal_code": ["Postal Code", "Postcode", "ZIP", "postalCode"],
    "telephone": ["Telephone", "Phone", "Contact Number", "telephone"],
    "packages": ["Package", "Packages", "Number of Packages"],
    "weight": ["Weight", "Total Weight"],
    "special_instructions": ["Special Instructions", "Instructions", "Notes"],
    "email": ["Email", "Notification Email", "email"],
    "collect_from": ["Preferred Collection Location", "Collect From", "Collection Location"],
}

# ── Review / submit ──────────────────────────────────────────────────────────

NEXT_BUTTON_SELECTORS = [
    'button.ups-cta_primary:has-text("Next")',
    'button[class*="primary"]:has-text("Next")',
    "#btnNext",
    'button:has-text("Next")',
    'button:has-text("Continue")',
    'button:has-text("Review")',
]
NEXT_BUTTON_WORDS = ["next", "continue", "review"]

SUBMIT_BUTTON_SELECTORS = [
    'button.ups-cta_primary:has-text("Schedule")',
    'button[class*="primary"]:has-text("Schedule")',
    'button:has-text("Schedule Pickup")',
    'button:has-text("Submit")',
    'button:has-text("Confirm")',
    "#btnSubmit",
]
SUBMIT_BUTTON_WORDS = ["schedule", "submit", "confirm"]

# ── Confirmation page ────────────────────────────────────────────────────────

# Reference tokens must contain a digit so labels like "Number" are not captured
CONFIRMATION_PATTERNS = [
    re.compile(r"Confirmation\s*(?:Number|No\.?)?[:\s#]*([A-Z0-9]*\d[A-Z0-9]*)", re.I),
    re.compile(r"Request\s*(?:Number|No\.?)?[:\s#]*([A-Z0-9]*\d[A-Z0-9]*)", re.I),
    re.compile(r"Reference\s*(?:Number|No\.?)?[:\s#]*([A-Z0-9]*\d[A-Z0-9]*)", re.I),
    re.compile(r"Pickup\s*(?:Number|No\.?)?[:\s#]*([A-Z0-9]*\d[A-Z0-9]*)", re.I),
]
TOTAL_CHARGES_PATTERN = re.compile(
    r"Total[^:\n]*:\s*(£\s*[\d.,]+|[\d.,]+\s*(?:GBP|£))", re.I
)
COLLECTION_DATE_PATTERN = re.compile(r"(?:Collection|Pickup)\s*Date[:\s]*([^\n]+)", re.I)
PAGE_TEXT_LIMIT = 3000
