"""
Authentication and authorization package for the membership backend.

Provides:
- Session and orderer JWT creation and validation
- Google OAuth code exchange and userinfo lookup
- Role and staff-permission access control dependencies
"""
