"""
Authentication application.

Provides the email-based User model shared by guests, hosts and
administrators. API authentication itself is handled by simplejwt
(see config.settings.REST_FRAMEWORK).
"""
