"""Webhook intake resources.

Usage
-----
Import the resource for route registration::

    from leadpipe.api.webhooks.resources import WebhookResource
"""
