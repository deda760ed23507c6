"""
CLI Commands for the referral reward engine.

Usage:
    flask referrals seed-config                       # Create the default configuration
    flask referrals preview --event signup --tier gold
    flask referrals balance u-123 --tenant-id spa-42  # Points credited to a user
"""
from .referrals import init_app as init_referral_commands


def init_app(app):
    """Register all CLI commands with the Flask app."""
    init_referral_commands(app)
