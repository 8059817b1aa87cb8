"""Constants used throughout the session manager."""

from __future__ import annotations

import json


# =============================================================================
# URLs
# =============================================================================

BASE_URL = "https://www.kleinanzeigen.de/"
LOGIN_URL = "https://www.kleinanzeigen.de/m-einloggen.html"

# =============================================================================
# Login Form Selectors
# =============================================================================

SELECTORS = {
    "email_input": 'input[name="loginMail"]',
    "password_input": 'input[name="password"]',
    "login_button": "#login-submit",
    "gdpr_accept": "#gdpr-banner-accept",
    "user_marker": "#user-email",
}

# =============================================================================
# Cookie Lifetimes
# =============================================================================

SECONDS_PER_DAY = 86400
# Largest epoch second a timestamp can carry (9999-12-31T23:59:59Z)
MAX_EPOCH_SECONDS = 253402300799
# Session cookies have no observable end server-side
SESSION_COOKIE_HORIZON_DAYS = 365

# Cookie name substrings that identify bearer tokens
ACCESS_TOKEN_MARKER = "access_token"
REFRESH_TOKEN_MARKER = "refresh_token"

# =============================================================================
# Page Predicates
# =============================================================================

LOGIN_INDICATORS = [
    "Mein Konto",
    "Meine Anzeigen",
    "Abmelden",
    "Nachrichten",
    "Einstellungen",
    "Favoriten",
    "Meine Anzeigen verwalten",
]

# Evaluates to true when the page shows an authenticated user
_AUTHENTICATED_TEMPLATE = """
(() => {
    const indicators = %(indicators)s;
    const bodyText = (document.body && document.body.innerText) || "";
    const marker = document.querySelector("#user-email");
    const hasUserEmail = !!(
        marker && marker.textContent &&
        marker.textContent.includes("angemeldet als:")
    );
    const hasTextMarkers = indicators.some((m) => bodyText.includes(m));
    const logoutButton = document.querySelector(
        'a[href*="logout"], a[href*="abmelden"], button[onclick*="logout"]'
    );
    const accountLinks = document.querySelectorAll(
        'a[href*="account"], a[href*="konto"]'
    );
    const loginButton = document.querySelector(
        'a[href*="m-einloggen.html"], a[href*="login"], .button[href*="einloggen"]'
    );
    const loginVisible = !!(loginButton && loginButton.offsetParent !== null);
    return hasUserEmail || (
        (hasTextMarkers || !!logoutButton || accountLinks.length > 0) &&
        !loginVisible
    );
})()
"""
AUTHENTICATED_JS = _AUTHENTICATED_TEMPLATE % {
    "indicators": json.dumps(LOGIN_INDICATORS, ensure_ascii=False)
}

# Evaluates to a reason string when a secondary confirmation blocks the login
VERIFICATION_JS = """
(() => {
    const text = ((document.body && document.body.innerText) || "").toLowerCase();
    const url = window.location.href.toLowerCase();
    if (url.includes("verify") || url.includes("bestaetigen")) {
        return "EMAIL_CONFIRMATION";
    }
    const markers = [
        "bestätige deine e-mail",
        "bestätigungs-e-mail",
        "wir haben dir eine e-mail",
        "sicherheitsüberprüfung",
    ];
    if (markers.some((m) => text.includes(m))) {
        return "EMAIL_CONFIRMATION";
    }
    return null;
})()
"""

DEFAULT_VERIFICATION_REASON = "EMAIL_CONFIRMATION"
