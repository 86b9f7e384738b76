import os

_defaults = {
    "DATABASE_URL": "sqlite:///:memory:",
    "SECRET_KEY": "testsecret",
    "CARD_GATEWAY_SECRET_KEY": "",
    "WALLET_CLIENT_ID": "wallet-test-client",
    "INSIGHTS_SERVICE_URL": "http://fake-insights",
    "CARD_GATEWAY_BASE_URL": "http://fake-gateway",
    "PASSWORD_HASH_ITERATIONS": "1000",
}

for k, v in _defaults.items():
    os.environ.setdefault(k, v)
