"""
Billing app: subscription billing core.

This app handles:
- Plans and users
- Subscription lifecycle (create, activate, renew, cancel, expire)
- Payment and refund transactions and their settlement
- Payment provider webhook events
- Revenue statistics

Usage:
    from django.apps import apps

    services = apps.get_app_config("billing").services
    result = services.simulator.simulate(user_id, plan_id)
"""
