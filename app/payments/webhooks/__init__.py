"""
Gateway webhook intake.

Usage:
    from payments.webhooks.views import gateway_webhook
    from payments.webhooks.handlers import dispatch_webhook, register_handler
"""
