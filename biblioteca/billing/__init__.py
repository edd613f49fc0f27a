from flask import current_app


def get_gateway():
    """Gateway client bound to the current app."""
    return current_app.extensions["payment_gateway"]
