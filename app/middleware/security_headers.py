"""
Response hardening headers.

ReqBridge serves JSON and a handful of binary downloads (rendered document
PDFs, project exports, uploaded source files). The SPA embeds rendered PDFs
in an iframe, so framing is limited to the same origin rather than denied.
HSTS is only sent when the session cookie is marked secure, i.e. when the
deployment is behind HTTPS.
"""

_CSP_DIRECTIVES = {
    "default-src": "'self'",
    "script-src": "'self'",
    "style-src": "'self' 'unsafe-inline'",
    "img-src": "'self' data: blob:",
    "connect-src": "'self'",
    "object-src": "'none'",
    "frame-ancestors": "'self'",
    "base-uri": "'self'",
    "form-action": "'self'",
}

CONTENT_SECURITY_POLICY = "; ".join(f"{name} {value}" for name, value in _CSP_DIRECTIVES.items())

_STATIC_HEADERS = {
    "Content-Security-Policy": CONTENT_SECURITY_POLICY,
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "Referrer-Policy": "same-origin",
    "Permissions-Policy": "camera=(), microphone=(), geolocation=()",
}

_HSTS = "max-age=31536000; includeSubDomains"


def init_security_headers(app):
    send_hsts = bool(app.config.get("SESSION_COOKIE_SECURE"))

    @app.after_request
    def _harden(response):
        for name, value in _STATIC_HEADERS.items():
            response.headers.setdefault(name, value)
        if send_hsts:
            response.headers.setdefault("Strict-Transport-Security", _HSTS)
        # API payloads and downloads carry per-user data
        if response.mimetype == "application/json" or response.headers.get("Content-Disposition"):
            response.headers.setdefault("Cache-Control", "no-store")
        response.headers.pop("Server", None)
        return response
