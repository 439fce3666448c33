"""
Security headers middleware.

Applies Content-Security-Policy, X-Content-Type-Options, X-Frame-Options,
Strict-Transport-Security, Referrer-Policy, and Permissions-Policy headers
to every response. Token-access responses are additionally marked
``Cache-Control: no-store``.

Usage:
    from chatshare.middleware.security_headers import init_security_headers
    init_security_headers(app)
"""

from flask import request


def init_security_headers(app):
    """Register after_request handler that injects security headers."""

    @app.after_request
    def _add_security_headers(response):
        # JSON API: nothing to load, nothing to frame
        response.headers.setdefault(
            "Content-Security-Policy", "default-src 'none'; frame-ancestors 'none'"
        )

        # Prevent MIME-type sniffing
        response.headers.setdefault("X-Content-Type-Options", "nosniff")

        # Clickjacking protection
        response.headers.setdefault("X-Frame-Options", "DENY")

        # HTTPS enforcement (ignored over HTTP, but ready for production)
        response.headers.setdefault(
            "Strict-Transport-Security", "max-age=31536000; includeSubDomains"
        )

        # Share links carry the token in the path; never leak it via Referer
        response.headers.setdefault("Referrer-Policy", "no-referrer")

        response.headers.setdefault(
            "Permissions-Policy",
            "camera=(), microphone=(), geolocation=(), payment=()"
        )

        if request.path.startswith("/api/sharing/shared/"):
            response.headers["Cache-Control"] = "no-store"

        response.headers.pop("Server", None)

        return response
