"""Constants for the Legrand Cloud integration."""

from __future__ import annotations

from typing import Final

DOMAIN: Final = "legrand_cloud"

# Azure AD B2C configuration (Legrand Ambient / Smart Lights app)
B2C_TENANT: Final = "eliotclouduamprd.onmicrosoft.com"
B2C_POLICY: Final = "B2C_1_ambientwifi_SignUpOrSignIn"
B2C_BASE_URL: Final = "https://login.eliotbylegrand.com"
B2C_AUTHORIZE_URL: Final = (
    f"{B2C_BASE_URL}/{B2C_TENANT}/{B2C_POLICY.lower()}/oauth2/v2.0/authorize"
)
B2C_TOKEN_URL: Final = (
    f"{B2C_BASE_URL}/{B2C_TENANT}/{B2C_POLICY.lower()}/oauth2/v2.0/token"
)
B2C_SELF_ASSERTED_URL: Final = f"{B2C_BASE_URL}/{B2C_TENANT}/{B2C_POLICY}/SelfAsserted"
B2C_CONFIRMED_URL: Final = (
    f"{B2C_BASE_URL}/{B2C_TENANT}/{B2C_POLICY}"
    "/api/CombinedSigninAndSignup/confirmed"
)
B2C_CLIENT_ID: Final = "d6f3606b-c2fe-4376-a6dd-dd929cbde18d"
B2C_REDIRECT_URI: Final = f"msal{B2C_CLIENT_ID}://auth"
B2C_SCOPES: Final = (
    f"https://{B2C_TENANT}/security/access.full openid profile offline_access"
)

# User agent used during the login choreography
AUTH_USER_AGENT: Final = "Mozilla/5.0 (iPhone; CPU iPhone OS 18_7 like Mac OS X)"

# Device control API
API_BASE_URL: Final = "https://api.developer.legrand.com"
API_SUBSCRIPTION_KEY: Final = "934c78d6eeb34879a9b66681f30b14fe"
API_USER_AGENT: Final = (
    "Ambient/3.0.2 (us.legrand.wiambientlighting; build:1; iOS 26.2.0) "
    "Alamofire/4.7.3"
)
API_COMMAND_TIMEOUT: Final = 10

# Network timeout in seconds applied to every request
REQUEST_TIMEOUT: Final = 20

# Tokens within this many seconds of expiry are treated as expired
TOKEN_EXPIRY_MARGIN: Final = 60

# Lifetime assumed for tokens without an explicit expiry
DEFAULT_TOKEN_LIFETIME: Final = 3600

# Authentication method
AUTH_METHOD_PASSWORD: Final = "password"
AUTH_METHOD_TOKEN: Final = "token"

# Config entry data keys
CONF_AUTH_METHOD: Final = "auth_method"
CONF_EMAIL: Final = "email"
CONF_ACCESS_TOKEN: Final = "access_token"

# Options keys
CONF_DEVICES: Final = "devices"
CONF_DEBUG: Final = "debug"

# Polling interval in seconds
DEFAULT_SCAN_INTERVAL: Final = 30
MIN_SCAN_INTERVAL: Final = 10

# Device types
DEVICE_TYPE_DIMMER: Final = "dimmer"
DEVICE_TYPE_SWITCH: Final = "switch"

STATE_ON: Final = "on"
STATE_OFF: Final = "off"
